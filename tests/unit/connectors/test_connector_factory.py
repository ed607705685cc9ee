import pytest
from tablesync.connectors.connector_factory import ConnectorFactory
from tablesync.connectors.csv_connector import CsvConnector
from tablesync.connectors.postgres_connector import PostgresConnector


class TestConnectorFactory:
    @pytest.mark.parametrize("connector_type", ["postgres", "pg", "Postgres"])
    def test_creates_postgres_connectors(self, connector_type):
        connector = ConnectorFactory.create_connector("warehouse", {
            "type": connector_type,
            "connection_string": "postgres://localhost/db",
            "schema": "sales",
            "chunk_size": 500,
        })
        assert isinstance(connector, PostgresConnector)
        assert connector.name == "warehouse"
        assert connector.connection_string == "postgres://localhost/db"
        assert connector.schema == "sales"
        assert connector.chunk_size == 500

    def test_creates_csv_connectors(self):
        connector = ConnectorFactory.create_connector("exports", {
            "type": "csv", "connection_string": "/data/out", "batch_size": 50})
        assert isinstance(connector, CsvConnector)
        assert connector.batch_size == 50

    def test_does_not_change_the_config(self):
        connection_config = {"type": "csv", "connection_string": "/data/out"}
        ConnectorFactory.create_connector("exports", connection_config)
        assert connection_config == {"type": "csv", "connection_string": "/data/out"}

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported connector type"):
            ConnectorFactory.create_connector("legacy", {"type": "oracle", "connection_string": "x"})

    def test_missing_connection_string(self):
        with pytest.raises(ValueError, match="missing a connection_string"):
            ConnectorFactory.create_connector("exports", {"type": "csv"})

    def test_create_connectors(self):
        connectors = ConnectorFactory.create_connectors({
            "source": {"type": "postgres", "connection_string": "postgres://localhost/db"},
            "destination": {"type": "csv", "connection_string": "/data/out"},
        })
        assert isinstance(connectors["source"], PostgresConnector)
        assert isinstance(connectors["destination"], CsvConnector)
