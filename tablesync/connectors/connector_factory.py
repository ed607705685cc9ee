from .csv_connector import CsvConnector
from .postgres_connector import PostgresConnector


class ConnectorFactory:
    connector_types = {
        'postgres': PostgresConnector,
        'pg': PostgresConnector,
        'csv': CsvConnector,
    }

    @staticmethod
    def create_connector(name, connection_config):
        connection_config = dict(connection_config)
        connector_type = str(connection_config.pop('type', '')).lower()
        connection_string = connection_config.pop('connection_string', None)

        connector_class = ConnectorFactory.connector_types.get(connector_type)
        if connector_class is None:
            raise ValueError(f"Unsupported connector type for {name}: {connector_type}")
        if not connection_string:
            raise ValueError(f"Connection {name} is missing a connection_string")
        return connector_class(name, connection_string, connection_config)

    @staticmethod
    def create_connectors(connections):
        return {name: ConnectorFactory.create_connector(name, connection_config)
                for name, connection_config in connections.items()}
