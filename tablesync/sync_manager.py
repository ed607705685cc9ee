# tablesync/sync_manager.py

from concurrent.futures import ThreadPoolExecutor
from .connectors.connector_factory import ConnectorFactory
from .logger import default_logger, to_logging_level
from .utils.table_config import get_tables_to_transfer

FULL = "FULL"
INCREMENTAL = "INCREMENTAL"

PENDING = "PENDING"
RUNNING = "RUNNING"
SUCCESS = "SUCCESS"
FAILED = "FAILED"


class SyncTask:
    """One table copy.  Tasks never share mutable state with each other."""

    def __init__(self, source_table, destination_table, mode=FULL, watermark_column=None, watermark_value=None):
        self.source_table = source_table
        self.destination_table = destination_table
        self.mode = mode
        self.watermark_column = watermark_column
        self.watermark_value = watermark_value
        self.status = PENDING
        self.rows_copied = 0
        self.error = None

    def __repr__(self):
        return (f"SyncTask({self.source_table!r} -> {self.destination_table!r}, mode={self.mode}, "
                f"status={self.status}, rows_copied={self.rows_copied})")


class SyncError(Exception):
    def __init__(self, failed_tasks):
        self.failed_tasks = list(failed_tasks)
        names = ", ".join(task.source_table for task in self.failed_tasks)
        super().__init__(f"{len(self.failed_tasks)} table(s) failed to sync: {names}")


class SyncManager:
    """
    Copies tables from a source connector into a destination connector.

    Used as a context manager, every connector is connected on entry and disconnected
    on exit, also when a table copy failed.
    """

    def __init__(self, connectors, source_name="source", destination_name="destination",
                 watermark_columns=("updated_at",), concurrency=1, logger=None, config=None):
        self.connectors = connectors
        self.source_name = source_name
        self.destination_name = destination_name
        self.watermark_columns = list(watermark_columns)
        self.concurrency = concurrency
        self.logger = logger or default_logger
        self.config = config

        for connector in self.connectors.values():
            connector.on_log = self.log
            connector.on_error = self.log_error

    @classmethod
    def from_config(cls, config, logger=None):
        connectors = ConnectorFactory.create_connectors(config.connections)
        return cls(
            connectors,
            source_name=config.source_name,
            destination_name=config.destination_name,
            watermark_columns=config.watermark_columns,
            concurrency=config.concurrency,
            logger=logger,
            config=config,
        )

    @property
    def source(self):
        return self.connectors[self.source_name]

    @property
    def destination(self):
        return self.connectors[self.destination_name]

    # OBSERVER CALLBACKS

    def log(self, message, level="info", data=None):
        log_level = to_logging_level(level)
        self.logger.log(log_level, message)
        if data is not None:
            self.logger.log(log_level, "%s", data)

    def log_error(self, error, context=None):
        self.logger.error("%s", error, exc_info=(type(error), error, error.__traceback__))
        if context:
            self.logger.debug("%s", context)

    # CONNECTION LIFECYCLE

    def connect(self):
        for connector in self.connectors.values():
            connector.connect()

    def end(self, failed=False):
        """
        Disconnects every connector.  When `failed` is set the caller is already raising,
        so disconnect errors are only logged.
        """
        self.log("disconnecting...")
        first_error = None
        for connector in self.connectors.values():
            try:
                connector.end()
            except Exception as e:
                self.log_error(e, {"connector": connector.name})
                first_error = first_error or e
        if failed:
            self.log("ETL Failed!", "error")
            return
        if first_error is not None:
            raise first_error
        self.log("ETL Complete!")

    def __enter__(self):
        try:
            self.connect()
        except Exception:
            self.end(failed=True)
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.end(failed=exc_type is not None)
        return False

    # SYNC

    def plan_task(self, source_table, destination, destination_table):
        task = SyncTask(source_table, destination_table)
        self._plan(task, destination)
        return task

    def _plan(self, task, destination):
        # INCREMENTAL when the destination already holds rows with a watermark, FULL otherwise
        columns = destination.list_columns(task.destination_table)

        for column in self.watermark_columns:
            if column not in columns:
                continue
            watermark = destination.max(task.destination_table, column)
            if watermark is not None:
                task.mode = INCREMENTAL
                task.watermark_column = column
                task.watermark_value = watermark
            break

    def copy_table(self, source, source_table, destination, destination_table=None):
        task = SyncTask(source_table, destination_table or source_table)
        self._execute(task, source, destination)
        return task

    def _execute(self, task, source, destination):
        task.status = RUNNING

        def handler(batch):
            destination.write(task.destination_table, batch)
            task.rows_copied += len(batch)

        try:
            self._plan(task, destination)
            if task.mode == INCREMENTAL:
                self.log(f"copying {source.name}.{task.source_table} to {destination.name}.{task.destination_table} "
                         f"since {task.watermark_column}={task.watermark_value}")
            else:
                self.log(f"copying {source.name}.{task.source_table} to {destination.name}.{task.destination_table}")

            source.read(task.source_table, handler, since=task.watermark_value,
                        watermark_column=task.watermark_column or self.watermark_columns[0])
        except Exception as e:
            task.status = FAILED
            task.error = e
            raise
        task.status = SUCCESS

    def _run_task(self, task):
        try:
            self._execute(task, self.source, self.destination)
        except Exception as e:
            self.log(f"failed to copy {task.source_table}: {e}", "error")
        return task

    def run(self, tables=None):
        """
        Copies every requested table (all source tables by default) and returns the tasks.
        Raises SyncError once all tasks finished if any of them failed.
        """
        if tables is None and self.config is not None:
            tables = [(entry['source'], entry['destination'])
                      for entry in get_tables_to_transfer(self.config, self.source)]
        elif tables is None:
            tables = list(self.source.tables)

        tasks = []
        for table in tables:
            source_table, destination_table = (table, table) if isinstance(table, str) else table
            tasks.append(SyncTask(source_table, destination_table))

        if self.concurrency > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
                list(executor.map(self._run_task, tasks))
        else:
            for task in tasks:
                self._run_task(task)

        failed = [task for task in tasks if task.status == FAILED]
        copied = sum(task.rows_copied for task in tasks)
        self.log(f"synced {len(tasks) - len(failed)}/{len(tasks)} tables, {copied} records")
        if failed:
            raise SyncError(failed) from failed[0].error
        return tasks
