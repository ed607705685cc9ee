# type_mappings.py

import warnings
from datetime import date, datetime
from decimal import Decimal
from psycopg2.extras import DateTimeRange, Json, Range

BOOLEAN = "BOOLEAN"
INTEGER = "INTEGER"
FLOAT = "FLOAT"
TIMESTAMP = "TIMESTAMP"
RANGE = "RANGE"
JSON = "JSON"
TEXT = "TEXT"

COLUMN_TYPES = (BOOLEAN, INTEGER, FLOAT, TIMESTAMP, RANGE, JSON, TEXT)


def is_fractional(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return True
    if isinstance(value, Decimal):
        return value.is_finite() and value.as_tuple().exponent < 0
    return False


def is_range(value):
    if isinstance(value, Range):
        return True
    return isinstance(value, dict) and value.get("begin") is not None and value.get("end") is not None


class TypeMapper:
    @staticmethod
    def infer_type(sample_values):
        # input: every value a batch holds for one column
        # output: one of COLUMN_TYPES, or None when there is nothing to infer from
        column_type = None
        for value in sample_values:
            if value is None or (isinstance(value, str) and value == ""):
                continue

            if isinstance(value, bool):
                column_type = BOOLEAN
            elif isinstance(value, (int, float, Decimal)):
                # numbers never replace a non-numeric type, fractions only widen INTEGER
                if column_type is None:
                    column_type = INTEGER
                if column_type == INTEGER and is_fractional(value):
                    column_type = FLOAT
            elif isinstance(value, (datetime, date)):
                column_type = TIMESTAMP
            elif is_range(value):
                column_type = RANGE
            elif isinstance(value, (dict, list, tuple)):
                column_type = JSON
            else:
                column_type = TEXT
        return column_type

    @staticmethod
    def needs_promotion(column_type, sample_values):
        # INTEGER -> FLOAT is the only promotion there is
        return column_type == INTEGER and any(is_fractional(value) for value in sample_values)

    @staticmethod
    def to_postgres(column_type):
        mapping = {
            BOOLEAN: "BOOLEAN",
            INTEGER: "BIGINT",
            FLOAT: "DOUBLE PRECISION",
            TIMESTAMP: "TIMESTAMP",
            RANGE: "TSRANGE",
            JSON: "JSON",
            TEXT: "TEXT",
        }
        if column_type not in mapping:
            raise ValueError(f"Unknown column type: {column_type}")
        return mapping[column_type]

    @staticmethod
    def from_postgres(data_type):
        main_type = data_type.split("(")[0].strip().lower()

        if main_type == "boolean":
            return BOOLEAN
        elif main_type in ("bigint", "integer", "smallint"):
            return INTEGER
        elif main_type in ("double precision", "real", "numeric", "decimal"):
            return FLOAT
        elif main_type.startswith("timestamp") or main_type == "date":
            return TIMESTAMP
        elif main_type in ("tsrange", "tstzrange", "daterange", "int4range", "int8range", "numrange"):
            return RANGE
        elif main_type in ("json", "jsonb"):
            return JSON
        elif main_type in ("text", "character varying", "character", "uuid"):
            return TEXT
        else:
            warnings.warn(f"Unable to map {data_type} to a column type.  Treating it as TEXT")
            return TEXT

    @staticmethod
    def adapt_value(column_type, value):
        """
        Converts a row value into something psycopg2 can bind for a column of the given type.
        """
        if value is None:
            return None
        if column_type == RANGE and isinstance(value, dict):
            return DateTimeRange(value["begin"], value["end"])
        if column_type == JSON and not isinstance(value, Json):
            return Json(value)
        if column_type == TEXT and not isinstance(value, str):
            if isinstance(value, (dict, list)):
                return Json(value)
            if isinstance(value, (bytes, bytearray, memoryview)):
                # bytea arrives as memoryview
                return bytes(value).hex()
            return str(value)
        return value
