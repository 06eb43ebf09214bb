"""Infrastructure modules for the background job and event retry layer.

Centralized infrastructure components:
- configuration: Settings management (Settings, RetrySettings, ...)
- logging: Structured logging (get_module_logger, bind_log_context)
- services: Singleton providers (get_settings)
- clock: Clock and timer abstraction (SystemClock, VirtualClock)
- concurrency: Per-key locking (KeyedLock)
- persistence: Key/value persistence interface (KeyValueStore)
- notifications: Alert delivery interface (Notifier, Severity)
- events: Domain events and fan-out publishing (Event, EventPublisher)
- resilience: Retry policy, retry ledger, dead letter queue, retry executor
"""
