# tablesync/connectors/postgres_connector.py

import threading
import psycopg2
from psycopg2 import errors, sql
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool
from .abstract_connector import AbstractConnector
from .type_mappings import TypeMapper
from ..paginated_reader import PaginatedReader
from ..schema_registry import SchemaRegistry, order_columns
from ..upsert_writer import UpsertWriter

# "relation/column does not exist" means the table is not there (yet)
MISSING_RELATION_ERRORS = (errors.UndefinedTable, errors.UndefinedColumn)
# writes only get past a dropped table; a missing column is a stale schema
MISSING_TABLE_ERRORS = (errors.UndefinedTable,)


class PostgresConnector(AbstractConnector):
    """
    PostgreSQL connector.  Every statement runs on a pooled connection inside its own
    transaction; a failing statement is rolled back, reported through `error` and raised,
    unless it failed because the table or column does not exist.

    At most `pool_size` statements run at once; further callers wait for a connection.
    """

    statement_delimiter = ";"

    def __init__(self, name, connection_string, options=None):
        super().__init__("postgres", name, connection_string, options)
        self.schema = self.options.get("schema", "public")
        self.pool_size = int(self.options.get("pool_size", 5))
        self.pool = None
        # ThreadedConnectionPool raises instead of blocking once every connection is out
        self._slots = threading.BoundedSemaphore(self.pool_size)
        self.registry = SchemaRegistry(self)
        self.reader = PaginatedReader(self)
        self.writer = UpsertWriter(self, self.registry)

    # CONNECTION METHODS

    def connect(self):
        if self.pool is None:
            self.pool = ThreadedConnectionPool(1, self.pool_size, dsn=self.connection_string)
        self.list_tables()

    def end(self):
        if self.pool is not None:
            self.pool.closeall()
            self.pool = None

    # STATEMENT EXECUTION

    def query(self, statement, params=None, missing_ok=False, tolerated=MISSING_RELATION_ERRORS):
        """
        Executes one statement in its own transaction and returns the rows as dicts.
        Returns None when missing_ok is set and the statement failed with one of the
        `tolerated` errors.
        """
        if self.pool is None:
            raise ConnectionError(f"{self.name} is not connected")

        with self._slots:
            connection = self.pool.getconn()
            try:
                with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(statement, params)
                    rows = cursor.fetchall() if cursor.description is not None else []
                connection.commit()
                return rows
            except psycopg2.Error as e:
                connection.rollback()
                if missing_ok and isinstance(e, tolerated):
                    return None
                self.error(e, {"query": statement, "values": params})
                raise
            finally:
                self.pool.putconn(connection)

    def execute(self, statement, params=None):
        return self.query(statement, params, missing_ok=True, tolerated=MISSING_TABLE_ERRORS)

    def exec_sql_file(self, path):
        with open(path, "r", encoding="utf-8") as sql_file:
            contents = sql_file.read()
        for command in contents.split(self.statement_delimiter):
            if command.strip():
                self.query(command)

    def _table(self, table):
        return sql.Identifier(self.schema, table)

    # CAPABILITIES

    def list_tables(self):
        rows = self.query(
            "SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname = %s",
            (self.schema,),
        )
        self.tables = sorted(row["tablename"] for row in rows)
        self.log(f"found {len(self.tables)} tables", "debug")
        return self.tables

    def describe_table(self, table):
        rows = self.query(
            "SELECT column_name, data_type, character_maximum_length "
            "FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s "
            "ORDER BY ordinal_position",
            (self.schema, table),
            missing_ok=True,
        )
        return [dict(row) for row in rows or []]

    def list_columns(self, table):
        columns = [row["column_name"] for row in self.describe_table(table)]
        return order_columns(columns, self.primary_key_column)

    def count(self, table, watermark_column=None, since=None):
        if watermark_column is not None and since is not None:
            statement = sql.SQL("SELECT COUNT(*) AS __count FROM {} WHERE {} >= %s").format(
                self._table(table), sql.Identifier(watermark_column))
            rows = self.query(statement, (since,), missing_ok=True)
        else:
            statement = sql.SQL("SELECT COUNT(*) AS __count FROM {}").format(self._table(table))
            rows = self.query(statement, missing_ok=True)
        if not rows:
            return 0
        return rows[0]["__count"]

    def max(self, table, column="updated_at"):
        statement = sql.SQL("SELECT MAX({}) AS __max FROM {}").format(
            sql.Identifier(column), self._table(table))
        rows = self.query(statement, missing_ok=True)
        if not rows:
            return None
        return rows[0]["__max"]

    def fetch_window(self, table, cursor, order_by=None):
        parts = [sql.SQL("SELECT * FROM {}").format(self._table(table))]
        params = []
        if cursor.filtered:
            parts.append(sql.SQL("WHERE {} >= %s").format(sql.Identifier(cursor.watermark_column)))
            params.append(cursor.watermark_value)
        if order_by is not None:
            parts.append(sql.SQL("ORDER BY {}").format(sql.Identifier(order_by)))
        parts.append(sql.SQL("LIMIT %s OFFSET %s"))
        params.extend([cursor.limit, cursor.offset])

        rows = self.query(sql.SQL(" ").join(parts), params, missing_ok=True)
        return [dict(row) for row in rows or []]

    def read(self, table, handler, since=None, watermark_column="updated_at"):
        return self.reader.read(table, handler, since, watermark_column)

    def write(self, table, rows):
        try:
            return self.writer.write(table, rows)
        except errors.UndefinedColumn:
            # the table changed behind the cached schema, the next write reloads it
            self.registry.forget(table)
            raise

    def ensure_table(self, table):
        self.query(sql.SQL("CREATE TABLE IF NOT EXISTS {} ()").format(self._table(table)))

    def drop_table(self, table):
        self.query(sql.SQL("DROP TABLE IF EXISTS {}").format(self._table(table)), missing_ok=True)
        self.registry.forget(table)

    # SCHEMA EVOLUTION

    def add_column(self, table, column, column_type, primary_key=False):
        statement = sql.SQL("ALTER TABLE {} ADD COLUMN {} {}").format(
            self._table(table), sql.Identifier(column), sql.SQL(TypeMapper.to_postgres(column_type)))
        if primary_key:
            statement = sql.Composed([statement, sql.SQL(" PRIMARY KEY")])
        self.query(statement)

    def alter_column_type(self, table, column, column_type):
        self.query(sql.SQL("ALTER TABLE {} ALTER COLUMN {} TYPE {}").format(
            self._table(table), sql.Identifier(column), sql.SQL(TypeMapper.to_postgres(column_type))))

    def build_upsert(self, table, columns, has_primary_key=True):
        column_list = sql.SQL(", ").join(sql.Identifier(column) for column in columns)
        placeholders = sql.SQL(", ").join(sql.Placeholder() for _ in columns)
        statement = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self._table(table), column_list, placeholders)

        if not has_primary_key or self.primary_key_column not in columns:
            return statement

        updates = [column for column in columns if column != self.primary_key_column]
        conflict = sql.SQL(" ON CONFLICT ({}) ").format(sql.Identifier(self.primary_key_column))
        if not updates:
            return sql.Composed([statement, conflict, sql.SQL("DO NOTHING")])

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = EXCLUDED.{}").format(sql.Identifier(column), sql.Identifier(column))
            for column in updates)
        return sql.Composed([statement, conflict, sql.SQL("DO UPDATE SET "), assignments])
