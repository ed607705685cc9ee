import threading
import time
import pytest
from unittest.mock import MagicMock, patch
from psycopg2.pool import PoolError
from psycopg2 import sql
from tablesync.connectors.abstract_connector import AbstractConnector
from tablesync.connectors.type_mappings import TypeMapper
from tablesync.paginated_reader import PaginatedReader
from tablesync.schema_registry import SchemaRegistry, order_columns
from tablesync.upsert_writer import UpsertWriter


class MemoryConnector(AbstractConnector):
    """
    Relational connector backed by dicts.  It implements the same store primitives as
    PostgresConnector (describe_table, fetch_window, add_column, build_upsert, execute...)
    so the real reader, registry and writer run on top of it.
    """

    def __init__(self, name="memory", options=None):
        super().__init__("memory", name, "memory://", options)
        self.store = {}
        self.statements = []
        self.connected = False
        self.registry = SchemaRegistry(self)
        self.reader = PaginatedReader(self)
        self.writer = UpsertWriter(self, self.registry)

    def connect(self):
        self.connected = True
        self.list_tables()

    def end(self):
        self.connected = False

    def seed(self, table, rows):
        self.write(table, rows)

    def rows(self, table):
        return [dict(row) for row in self.store[table]["rows"]]

    def list_tables(self):
        self.tables = sorted(self.store)
        return self.tables

    def describe_table(self, table):
        if table not in self.store:
            return []
        return [{"column_name": column, "data_type": data_type}
                for column, data_type in self.store[table]["columns"].items()]

    def list_columns(self, table):
        columns = [row["column_name"] for row in self.describe_table(table)]
        return order_columns(columns, self.primary_key_column)

    def _filtered(self, table, watermark_column=None, since=None):
        if table not in self.store:
            return []
        rows = self.store[table]["rows"]
        if watermark_column is not None and since is not None:
            rows = [row for row in rows if row.get(watermark_column) is not None and row[watermark_column] >= since]
        return rows

    def count(self, table, watermark_column=None, since=None):
        return len(self._filtered(table, watermark_column, since))

    def max(self, table, column="updated_at"):
        if table not in self.store or column not in self.store[table]["columns"]:
            return None
        values = [row.get(column) for row in self.store[table]["rows"] if row.get(column) is not None]
        return max(values) if values else None

    def fetch_window(self, table, cursor, order_by=None):
        self.statements.append(("select", table, cursor.offset, cursor.limit))
        rows = self._filtered(table, cursor.watermark_column, cursor.watermark_value)
        if order_by is not None:
            rows = sorted(rows, key=lambda row: row[order_by])
        columns = list(self.store[table]["columns"]) if table in self.store else []
        window = rows[cursor.offset:cursor.offset + cursor.limit]
        return [{column: row.get(column) for column in columns} for row in window]

    def read(self, table, handler, since=None, watermark_column="updated_at"):
        return self.reader.read(table, handler, since, watermark_column)

    def write(self, table, rows):
        return self.writer.write(table, rows)

    def ensure_table(self, table):
        self.statements.append(("ensure", table))
        self.store.setdefault(table, {"columns": {}, "primary_key": None, "rows": []})

    def drop_table(self, table):
        self.store.pop(table, None)
        self.registry.forget(table)

    def add_column(self, table, column, column_type, primary_key=False):
        self.statements.append(("add_column", table, column, column_type, primary_key))
        columns = self.store[table]["columns"]
        if column in columns:
            raise RuntimeError(f'column "{column}" of relation "{table}" already exists')
        columns[column] = TypeMapper.to_postgres(column_type).lower()
        if primary_key:
            self.store[table]["primary_key"] = column

    def alter_column_type(self, table, column, column_type):
        self.statements.append(("alter_column", table, column, column_type))
        self.store[table]["columns"][column] = TypeMapper.to_postgres(column_type).lower()
        for row in self.store[table]["rows"]:
            if row.get(column) is not None:
                row[column] = float(row[column])

    def build_upsert(self, table, columns, has_primary_key=True):
        kind = "upsert" if has_primary_key and self.primary_key_column in columns else "insert"
        return (kind, table, tuple(columns))

    def execute(self, statement, params=None):
        kind, table, columns = statement
        self.statements.append((kind, table, columns))
        values = dict(zip(columns, params))
        rows = self.store[table]["rows"]
        if kind == "upsert":
            for row in rows:
                if row.get(self.primary_key_column) == values[self.primary_key_column]:
                    row.update(values)
                    return []
        rows.append(values)
        return []


def render(statement):
    # psycopg2.sql composables -> text, without needing a live connection
    if isinstance(statement, sql.Composed):
        return "".join(render(part) for part in statement.seq)
    if isinstance(statement, sql.Identifier):
        return ".".join(f'"{part}"' for part in statement.strings)
    if isinstance(statement, sql.Placeholder):
        return "%s"
    if isinstance(statement, sql.SQL):
        return statement.string
    return str(statement)


@pytest.fixture
def make_connector():
    def factory(name="memory", **options):
        return MemoryConnector(name, options)
    return factory


@pytest.fixture
def memory_connector(make_connector):
    return make_connector("memory", chunk_size=2)


@pytest.fixture
def render_sql():
    return render


class LimitedPool:
    """Stand-in for ThreadedConnectionPool that, like the real one, fails instead of waiting."""

    def __init__(self, minconn, maxconn, dsn=None):
        self.maxconn = maxconn
        self.in_use = 0
        self.peak = 0
        self._lock = threading.Lock()
        self.connection = MagicMock()
        cursor = self.connection.cursor.return_value.__enter__.return_value
        cursor.fetchall.return_value = []
        # keep statements in flight long enough for threads to overlap
        cursor.execute.side_effect = lambda statement, params=None: time.sleep(0.005)

    def getconn(self):
        with self._lock:
            if self.in_use >= self.maxconn:
                raise PoolError("connection pool exhausted")
            self.in_use += 1
            self.peak = max(self.peak, self.in_use)
        return self.connection

    def putconn(self, connection):
        with self._lock:
            self.in_use -= 1

    def closeall(self):
        pass


@pytest.fixture
def limited_pools():
    pools = []

    def factory(minconn, maxconn, dsn=None):
        pool = LimitedPool(minconn, maxconn, dsn)
        pools.append(pool)
        return pool

    with patch("tablesync.connectors.postgres_connector.ThreadedConnectionPool", side_effect=factory):
        yield pools
