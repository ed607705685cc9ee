# tablesync/schema_registry.py

import threading
from .connectors.type_mappings import TypeMapper, FLOAT


def order_columns(columns, primary_key):
    # primary key first, everything else in lexical order
    return sorted(columns, key=lambda column: (column != primary_key, column))


class Table:
    """Known columns and inferred types of one destination table."""

    def __init__(self, name, primary_key="id", columns=None):
        self.name = name
        self.primary_key = primary_key
        self.columns = dict(columns or {})

    def __contains__(self, column):
        return column in self.columns

    def column_names(self):
        return order_columns(self.columns, self.primary_key)

    def type_of(self, column):
        return self.columns.get(column)

    def has_primary_key(self):
        return self.primary_key in self.columns

    def add(self, column, column_type):
        self.columns[column] = column_type

    def promote(self, column):
        self.columns[column] = FLOAT


class SchemaRegistry:
    """
    Tracks the destination schema of every table a connector writes to and issues the
    DDL needed to make a batch fit: create the table, add missing columns, and widen
    INTEGER columns that start receiving fractional values.

    One registry belongs to one connector instance.
    """

    def __init__(self, connector):
        self.connector = connector
        self._tables = {}
        self._lock = threading.Lock()

    def get(self, table):
        with self._lock:
            known = self._tables.get(table)
        if known is None:
            known = self.load(table)
        return known

    def load(self, table):
        primary_key = self.connector.primary_key_column
        columns = {}
        for row in self.connector.describe_table(table):
            columns[row["column_name"]] = TypeMapper.from_postgres(row["data_type"])
        known = Table(table, primary_key, columns)
        with self._lock:
            self._tables[table] = known
        return known

    def forget(self, table):
        with self._lock:
            self._tables.pop(table, None)

    def ensure(self, table):
        self.connector.ensure_table(table)
        return self.get(table)

    def evolve(self, table, batch):
        """
        Makes the destination table able to hold every column of the batch.
        Returns the up-to-date Table.
        """
        known = self.ensure(table)

        for column in batch.columns():
            sample_values = batch.values(column)

            if column not in known:
                column_type = TypeMapper.infer_type(sample_values)
                if column_type is None:
                    # nothing but empty values yet, wait for a batch that has some
                    continue
                is_primary_key = column == known.primary_key
                self.connector.add_column(table, column, column_type, primary_key=is_primary_key)
                known.add(column, column_type)
                self.connector.log(f"  added column {column} {column_type} to {table}", "debug")

            elif TypeMapper.needs_promotion(known.type_of(column), sample_values):
                self.connector.alter_column_type(table, column, FLOAT)
                known.promote(column)
                self.connector.log(f"  promoted {table}.{column} to {FLOAT}", "debug")

        return known
