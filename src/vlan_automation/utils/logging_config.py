"""Logging configuration for VLAN automation.

Debug levels (``debug_level`` in the config file):
    0: console only, INFO
    1: console + log file, INFO
    2: console + log file, DEBUG
    3: like 2, plus full rendered device configurations

Usage:
    from vlan_automation.utils.logging_config import setup_logging, timed

    setup_logging(config.logging)  # Call once at startup

    @timed("get_connections")
    async def get_connections(self, server_id):
        ...

    # Or use context manager for sections:
    async with timed_section("apply", device_id="switch-25", vlan_id=101):
        ...
"""
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("vlan_automation.perf")
main_logger = logging.getLogger("vlan_automation")

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-25s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DIR_MODE = 0o755

# Level at which rendered configurations are dumped to the log
DUMP_CONFIG_LEVEL = 3


def ensure_log_dir(log_file: Path) -> bool:
    """Create the log directory and repair its permissions.

    Returns:
        True if the directory exists and is writable afterwards
    """
    log_dir = log_file.parent
    try:
        log_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        main_logger.warning(f"Could not create log directory {log_dir}: {e}")
        return False

    if not os.access(log_dir, os.W_OK):
        try:
            os.chmod(log_dir, DIR_MODE)
        except OSError as e:
            main_logger.warning(f"Could not fix permissions on {log_dir}: {e}")
    return os.access(log_dir, os.W_OK)


def setup_logging(settings) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO, DEBUG when debug_level >= 2 and no file is used)
    - File handler with rotation when debug_level >= 1
    - Performance logger for API and device timings

    Args:
        settings: LoggingSettings from the loaded configuration
    """
    level = settings.debug_level
    file_level = logging.DEBUG if level >= 2 else logging.INFO

    main_format = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt=DATE_FORMAT
    )

    root_logger = logging.getLogger("vlan_automation")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in list(perf_logger.handlers):
        perf_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(main_format)
    root_logger.addHandler(console_handler)

    # perf records go to the file only
    perf_logger.propagate = False
    perf_logger.setLevel(logging.DEBUG)

    log_file = Path(settings.log_file).expanduser()
    if level >= 1 and ensure_log_dir(log_file):
        max_bytes = settings.max_size_mb * 1024 * 1024
        file_handler = RotatingFileHandler(
            log_file,
            mode="a",
            maxBytes=max_bytes,
            backupCount=settings.backups,
            encoding="utf-8"
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(main_format)
        root_logger.addHandler(file_handler)

        perf_handler = RotatingFileHandler(
            log_file.parent / f"{log_file.stem}-perf.log",
            mode="a",
            maxBytes=max_bytes,
            backupCount=settings.backups,
            encoding="utf-8"
        )
        perf_handler.setLevel(logging.DEBUG)
        perf_handler.setFormatter(perf_format)
        perf_logger.addHandler(perf_handler)

        root_logger.info(
            f"Logging initialized: debug_level={level}, file={log_file}"
        )
    else:
        perf_logger.addHandler(logging.NullHandler())


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator to log execution time of async functions.

    Args:
        operation: Name of the operation (e.g., "get_connections", "commit")
        device_id: Optional identifier (can also be inferred from self.device_id)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], 'device_id'):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000  # ms
                perf_logger.info(
                    f"{operation:20s} | {dev_id or 'N/A':15s} | {elapsed:8.2f}ms | OK"
                )
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(
                    f"{operation:20s} | {dev_id or 'N/A':15s} | {elapsed:8.2f}ms | FAIL: {e}"
                )
                raise

        return async_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Args:
        operation: Name of the operation
        device_id: Device identifier
        **extra: Additional context to log
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {device_id or 'N/A':15s} | {elapsed:8.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
