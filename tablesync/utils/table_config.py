# tablesync/utils/table_config.py

def get_tables_to_transfer(config, source_connector):
    # input: config with an optional list of tables, a connected source connector
    # output: list of {"source": ..., "destination": ...} dicts
    entries = config.tables or source_connector.tables
    tables = []

    for i, entry in enumerate(entries, start=1):
        if isinstance(entry, str):
            source_table, destination_table = entry, entry
        elif isinstance(entry, dict):
            source_table = entry.get('source') or entry.get('table')
            destination_table = entry.get('destination') or source_table
        else:
            raise ValueError(f"Table entry {i} must be a table name or a mapping, got {entry!r}")

        if not source_table:
            raise ValueError(f"You are missing a source table name in table entry {i}.")

        tables.append({
            'source': source_table,
            'destination': destination_table,
        })

    return tables
