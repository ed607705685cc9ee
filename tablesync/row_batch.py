# tablesync/row_batch.py

from collections.abc import Sequence


class RowBatch(Sequence):
    """
    An ordered, read-only window of rows that all come from the same table.
    Rows are plain dicts keyed by column name.
    """

    def __init__(self, table, rows=()):
        self.table = table
        self._rows = tuple(dict(row) for row in rows)

    def __getitem__(self, index):
        return self._rows[index]

    def __len__(self):
        return len(self._rows)

    def __repr__(self):
        return f"RowBatch(table={self.table!r}, rows={len(self._rows)})"

    def __eq__(self, other):
        if isinstance(other, RowBatch):
            return self.table == other.table and self._rows == other._rows
        return NotImplemented

    # keys of every row, in the order they were first seen
    def columns(self):
        seen = {}
        for row in self._rows:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)

    def values(self, column):
        return [row.get(column) for row in self._rows]


def as_batch(table, rows):
    if isinstance(rows, RowBatch):
        return rows
    if rows is None:
        return RowBatch(table)
    return RowBatch(table, rows)
