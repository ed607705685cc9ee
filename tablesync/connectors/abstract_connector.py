# tablesync/connectors/abstract_connector.py

from abc import ABC, abstractmethod


class AbstractConnector(ABC):

    def __init__(self, connector_type, name, connection_string, options=None):
        self.connector_type = connector_type
        self.name = name
        self.connection_string = connection_string
        self.options = dict(options or {})
        self.chunk_size = int(self.options.get("chunk_size", 1000))
        self.primary_key_column = self.options.get("primary_key", "id")
        self.tables = []
        # observers; a connector without them stays silent
        self.on_log = None
        self.on_error = None

    # EVENTS

    def log(self, message, level="info", data=None):
        if self.on_log is not None:
            self.on_log(f"[{self.name}] {message}", level, data)

    def error(self, err, context=None):
        if self.on_error is not None:
            self.on_error(err, context)

    # CONNECTION METHODS

    # opens the transport and loads the list of tables
    @abstractmethod
    def connect(self):
        pass

    @abstractmethod
    def end(self):
        pass

    # CAPABILITIES

    @abstractmethod
    def list_tables(self):
        pass

    # output: column names, primary key first
    @abstractmethod
    def list_columns(self, table):
        pass

    @abstractmethod
    def count(self, table, watermark_column=None, since=None):
        pass

    # output: the largest value of a column, None when the table or column is missing
    @abstractmethod
    def max(self, table, column="updated_at"):
        pass

    @abstractmethod
    def read(self, table, handler, since=None, watermark_column="updated_at"):
        pass

    @abstractmethod
    def write(self, table, rows):
        pass

    @abstractmethod
    def ensure_table(self, table):
        pass

    @abstractmethod
    def drop_table(self, table):
        pass

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.end()
        return False

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"
