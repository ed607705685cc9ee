# tablesync/config.py

import yaml
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    def __init__(self, config_path=None, config_dict=None):
        if config_path:
            self.config_data = self.load_config(config_path)
        elif config_dict:
            self.config_data = self._process_config(config_dict)
        else:
            raise ValueError("Either config_path or config_dict must be provided")

        self.connections = self.config_data.get('connections') or {}
        if not self.connections:
            raise ValueError("At least one connection must be configured under 'connections'")
        for name, connection in self.connections.items():
            if not isinstance(connection, dict) or 'type' not in connection:
                raise ValueError(f"Connection {name} must provide a type")

        sync_config = self.config_data.get('sync') or {}
        self.source_name = sync_config.get('source', 'source')
        self.destination_name = sync_config.get('destination', 'destination')
        for role, name in (('source', self.source_name), ('destination', self.destination_name)):
            if name not in self.connections:
                raise ValueError(f"The {role} connection {name} is not defined under 'connections'")

        self.tables = sync_config.get('tables') or []
        self.watermark_columns = sync_config.get('watermark_columns') or ['updated_at']
        self.concurrency = int(sync_config.get('concurrency', 1))
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

        logging_config = self.config_data.get('logging') or {}
        self.log_level = str(logging_config.get('level', 'INFO')).upper()

    @staticmethod
    def load_config(config_path):
        with open(config_path, 'r') as config_file:
            config = yaml.safe_load(config_file)

        # Process the config to replace environment variables
        return Config._process_config(config)

    @staticmethod
    def _process_config(config):
        if isinstance(config, dict):
            return {k: Config._process_config(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [Config._process_config(v) for v in config]
        elif isinstance(config, str) and config.startswith('${') and config.endswith('}'):
            env_var = config[2:-1]
            value = os.environ.get(env_var)
            if value is None:
                raise ValueError(f"Environment variable {env_var} is not set")
            return value
        else:
            return config

    @classmethod
    def from_dict(cls, config_dict):
        return cls(config_dict=config_dict)
