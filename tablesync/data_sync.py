# tablesync/data_sync.py

from .logger import setup_logger, to_logging_level
from .sync_manager import SyncManager


def sync_data(config, tables=None):
    logger = setup_logger('tablesync', to_logging_level(config.log_level))
    with SyncManager.from_config(config, logger=logger) as sync_manager:
        return sync_manager.run(tables)
