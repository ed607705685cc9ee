# main.py

import argparse
import sys
from tablesync.config import Config
from tablesync.data_sync import sync_data
from tablesync.sync_manager import SyncError

def main():
    parser = argparse.ArgumentParser(description="Table Sync Tool")
    parser.add_argument("action", choices=["sync_data"], help="Action to perform")
    parser.add_argument("--config", required=False, default='config/config.yaml', help="Path to configuration file")
    parser.add_argument("--tables", required=False, nargs="+", help="Only sync these source tables")
    parser.add_argument("--concurrency", required=False, type=int, help="Number of tables copied at the same time")
    args = parser.parse_args()

    # Load configuration
    config = Config(config_path=args.config)
    if args.concurrency is not None:
        config.concurrency = max(1, args.concurrency)

    if args.action == "sync_data":
        try:
            tasks = sync_data(config, args.tables)
        except SyncError as e:
            print(f"Data sync failed: {e}")
            return 1
        print(f"Data sync complete: {len(tasks)} tables, {sum(task.rows_copied for task in tasks)} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
