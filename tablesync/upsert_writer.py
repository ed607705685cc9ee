# tablesync/upsert_writer.py

from .row_batch import as_batch
from .connectors.type_mappings import TypeMapper


class UpsertWriter:
    """
    Writes batches into a destination table, one insert-or-update per row keyed on the
    primary key.  The schema is evolved through the connector's SchemaRegistry first.
    """

    def __init__(self, connector, registry):
        self.connector = connector
        self.registry = registry

    def write(self, table, rows):
        batch = as_batch(table, rows)
        known = self.registry.evolve(table, batch)

        # stable column order for the whole batch; each row only lists the columns it carries
        batch_columns = [column for column in batch.columns() if column in known]
        statements = {}

        for row in batch:
            columns = tuple(column for column in batch_columns if column in row)
            if not columns:
                continue
            if columns not in statements:
                statements[columns] = self.connector.build_upsert(table, columns, known.has_primary_key())
            values = [TypeMapper.adapt_value(known.type_of(column), row[column]) for column in columns]
            self.connector.execute(statements[columns], values)

        if len(batch) > 0:
            self.connector.log(f"  wrote {len(batch)} records to {table}")
        return len(batch)
