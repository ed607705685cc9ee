# tablesync/paginated_reader.py

from .row_batch import RowBatch


def require_handler(handler):
    if handler is None or not callable(handler):
        raise TypeError("handler function is required")


class Cursor:
    """Position of a paginated read: window size, offset and optional watermark filter."""

    def __init__(self, limit, offset=0, watermark_column=None, watermark_value=None):
        if limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit}")
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        self.limit = limit
        self.offset = offset
        self.watermark_column = watermark_column
        self.watermark_value = watermark_value

    @property
    def filtered(self):
        return self.watermark_column is not None and self.watermark_value is not None

    def advance(self):
        self.offset += self.limit

    def __repr__(self):
        return (f"Cursor(limit={self.limit}, offset={self.offset}, "
                f"watermark_column={self.watermark_column!r}, watermark_value={self.watermark_value!r})")


class PaginatedReader:
    """
    Reads a table window by window and pushes every window to a handler.

    The next window is only fetched once the handler returned for the previous one,
    so at most one window is held in memory.  The loop ends on the first empty window,
    which is delivered too: the handler always sees a final empty batch.
    """

    def __init__(self, connector):
        self.connector = connector

    def read(self, table, handler, since=None, watermark_column="updated_at"):
        require_handler(handler)

        columns = self.connector.list_columns(table)
        if since is not None and watermark_column in columns:
            return self.read_since(table, handler, since, watermark_column, columns)
        return self.read_full(table, handler, columns)

    def read_since(self, table, handler, since, watermark_column="updated_at", columns=None):
        require_handler(handler)

        cursor = Cursor(self.connector.chunk_size, watermark_column=watermark_column, watermark_value=since)
        total_count = self.connector.count(table, watermark_column=watermark_column, since=since)
        self.connector.log(f"getting {total_count} records from {table} newer than {watermark_column}={since}")
        return self._drain(table, handler, cursor, total_count, columns)

    def read_full(self, table, handler, columns=None):
        require_handler(handler)

        cursor = Cursor(self.connector.chunk_size)
        total_count = self.connector.count(table)
        self.connector.log(f"getting {total_count} records from {table}...")
        return self._drain(table, handler, cursor, total_count, columns)

    def _drain(self, table, handler, cursor, total_count, columns=None):
        if columns is None:
            columns = self.connector.list_columns(table)
        primary_key = self.connector.primary_key_column
        order_by = primary_key if primary_key in columns else None

        rows_found = 0
        while True:
            rows = self.connector.fetch_window(table, cursor, order_by)
            rows_found += len(rows)
            if rows:
                self.connector.log(f"  got {rows_found}/{total_count} records from {table}")
            handler(RowBatch(table, rows))
            if not rows:
                break
            cursor.advance()
        return rows_found
