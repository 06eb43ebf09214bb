"""Built-in scheduled jobs.

Each job implements the TaskJob capability and leaves business rules to an
injected collaborator.
"""

from jobs.tasks.cache_optimization import (
    CacheAlertThresholds,
    CacheBackend,
    CacheOptimizationTask,
    CacheSnapshot,
    CacheStats,
)
from jobs.tasks.data_cleanup import DataCleanupTask, StorageJanitor
from jobs.tasks.heartbeat import SchedulerHeartbeatTask
from jobs.tasks.inventory_report import InventoryReportTask, ReportPeriod, ReportSource
from jobs.tasks.low_stock_alert import (
    EventSink,
    InventoryMonitor,
    LowStockAlert,
    LowStockAlertTask,
    StockSeverity,
)

__all__ = [
    "SchedulerHeartbeatTask",
    "DataCleanupTask",
    "StorageJanitor",
    "LowStockAlertTask",
    "LowStockAlert",
    "StockSeverity",
    "InventoryMonitor",
    "EventSink",
    "InventoryReportTask",
    "ReportPeriod",
    "ReportSource",
    "CacheOptimizationTask",
    "CacheBackend",
    "CacheStats",
    "CacheSnapshot",
    "CacheAlertThresholds",
]
