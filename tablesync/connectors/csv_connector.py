# tablesync/connectors/csv_connector.py

import json
import math
import os
from datetime import date, datetime
import numpy as np
import pandas as pd
from .abstract_connector import AbstractConnector
from ..paginated_reader import require_handler
from ..row_batch import RowBatch, as_batch
from ..schema_registry import order_columns

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _to_python(value):
    # pandas scalars -> plain python values
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _to_cell(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def _cast_dates(chunk):
    for column in chunk.columns:
        series = chunk[column]
        if not (pd.api.types.is_string_dtype(series) or pd.api.types.is_object_dtype(series)):
            continue
        if series.isna().all():
            continue
        try:
            chunk[column] = pd.to_datetime(series, format="ISO8601")
        except (ValueError, TypeError):
            pass
    return chunk


class CsvConnector(AbstractConnector):
    """
    Flat-file connector.  The connection string is a directory and every table is a
    `<table>.csv` file in it; a table name that already ends in `.csv` is used as a path.

    Reads are streamed with pandas in chunks of `batch_size` rows and the next chunk is
    only parsed after the handler returned.
    """

    def __init__(self, name, connection_string, options=None):
        super().__init__("csv", name, connection_string, options)
        self.batch_size = int(self.options.get("batch_size", 1000))

    def connect(self):
        if not os.path.isdir(self.connection_string):
            raise ConnectionError(f"CSV directory not found: {self.connection_string}")
        self.list_tables()

    def end(self):
        pass

    def path_for(self, table):
        if table.endswith(".csv"):
            return table
        return os.path.join(self.connection_string, f"{table}.csv")

    def _has_data(self, path):
        return os.path.isfile(path) and os.path.getsize(path) > 0

    def _chunks(self, path):
        if not self._has_data(path):
            return
        reader = pd.read_csv(path, chunksize=self.batch_size, skipinitialspace=True,
                             dtype_backend="numpy_nullable")
        with reader:
            for chunk in reader:
                chunk = _cast_dates(chunk)
                yield [{key: _to_python(value) for key, value in record.items()}
                       for record in chunk.to_dict("records")]

    def _all_rows(self, path):
        rows = []
        for chunk in self._chunks(path):
            rows.extend(chunk)
        return rows

    # CAPABILITIES

    def list_tables(self):
        self.tables = sorted(
            file_name[:-len(".csv")]
            for file_name in os.listdir(self.connection_string)
            if file_name.endswith(".csv")
        )
        self.log(f"found {len(self.tables)} tables", "debug")
        return self.tables

    def list_columns(self, table):
        path = self.path_for(table)
        if not self._has_data(path):
            return []
        columns = [str(column) for column in pd.read_csv(path, nrows=0).columns]
        return order_columns(columns, self.primary_key_column)

    def count(self, table, watermark_column=None, since=None):
        total = 0
        for rows in self._chunks(self.path_for(table)):
            total += len(self._since(rows, watermark_column, since))
        return total

    def max(self, table, column="updated_at"):
        values = [row.get(column) for row in self._all_rows(self.path_for(table))]
        values = [value for value in values if value is not None]
        if not values:
            return None
        return max(values)

    def _since(self, rows, watermark_column, since):
        if watermark_column is None or since is None:
            return rows
        return [row for row in rows if row.get(watermark_column) is not None and row[watermark_column] >= since]

    def read(self, table, handler, since=None, watermark_column="updated_at"):
        require_handler(handler)

        path = self.path_for(table)
        filtered = since is not None and watermark_column in self.list_columns(table)
        rows_found = 0
        last_chunk_size = self.batch_size

        for rows in self._chunks(path):
            last_chunk_size = len(rows)
            if filtered:
                rows = self._since(rows, watermark_column, since)
            rows_found += len(rows)
            if rows:
                self.log(f"  got {len(rows)} records from {path}")
            handler(RowBatch(table, rows))

        # a short final chunk already told the handler the file ended
        if last_chunk_size == self.batch_size:
            handler(RowBatch(table))
        return rows_found

    def write(self, table, rows):
        batch = as_batch(table, rows)
        path = self.path_for(table)
        primary_key = self.primary_key_column
        if len(batch) == 0:
            self.ensure_table(table)
            return 0

        existing = self._all_rows(path)
        if all(row.get(primary_key) is not None for row in batch):
            # rows sharing a primary key are merged, later values win
            unkeyed = [row for row in existing if row.get(primary_key) is None]
            merged = {row[primary_key]: row for row in existing if row.get(primary_key) is not None}
            for row in batch:
                key = row[primary_key]
                merged[key] = {**merged.get(key, {}), **row}
            records = unkeyed + list(merged.values())
        else:
            records = existing + list(batch)

        columns = RowBatch(table, records).columns()
        # object dtype keeps integers with gaps from being written as floats
        frame = pd.DataFrame(
            [{column: _to_cell(row.get(column)) for column in columns} for row in records],
            columns=columns,
            dtype=object,
        )
        frame.to_csv(path, index=False)
        self.log(f"  wrote {len(batch)} records to {path}")
        return len(batch)

    def ensure_table(self, table):
        path = self.path_for(table)
        if not os.path.exists(path):
            open(path, "a", encoding="utf-8").close()

    def drop_table(self, table):
        path = self.path_for(table)
        if os.path.exists(path):
            os.remove(path)
