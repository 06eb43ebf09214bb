import signal
import threading

from dotenv import load_dotenv

from infrastructure.logging import get_module_logger
from infrastructure.services import get_settings
from jobs import scheduled_tasks
from jobs.runtime import BackgroundRuntime, build_runtime

logger = get_module_logger()

load_dotenv()


def main() -> BackgroundRuntime:
    """Build the runtime, register the built-in tasks and start the scheduler."""
    logger.info("application_startup")
    list_configs()

    runtime = build_runtime()
    scheduled_tasks.init(runtime)

    if runtime.settings.scheduler.enabled:
        runtime.scheduler.start()
        runtime.scheduler.run_continuously(runtime.settings.scheduler.poll_interval_seconds)
    else:
        logger.info("job_scheduler_disabled")
    return runtime


def list_configs():
    """List all configuration settings keys"""
    settings = get_settings()
    config_settings = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


def run_forever() -> None:
    runtime = main()
    stop = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("shutdown_signal_received", signal=signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    stop.wait()
    runtime.shutdown()


if __name__ == "__main__":
    run_forever()
