"""
Component logging for the offline queue.

Every module gets its five level functions from one factory so the
component prefix and logger hierarchy stay consistent:

Usage:
    from shared.log import create_logger
    log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")
    log_info("Loaded 3 queued requests")  # -> [OfflineQueue Engine] Loaded 3 queued requests

Records go through the stdlib ``offline_queue.<component>`` logger, so
applications attach handlers and levels with ``logging`` as usual.
"""

import logging

ROOT_LOGGER = "offline_queue"

# Below DEBUG; used for per-item bookkeeping
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def create_logger(component: str = ""):
    """Create log functions for a component.

    Args:
        component: Component name suffix. If provided, prefix becomes
                   "[OfflineQueue {component}]", otherwise "[OfflineQueue]".

    Returns:
        Tuple of (log_trace, log_debug, log_info, log_warn, log_error) functions.
    """
    prefix = f"[OfflineQueue {component}]" if component else "[OfflineQueue]"
    name = f"{ROOT_LOGGER}.{component.lower()}" if component else ROOT_LOGGER
    logger = logging.getLogger(name)

    def log_trace(msg): logger.log(TRACE, f"{prefix} {msg}")
    def log_debug(msg): logger.debug(f"{prefix} {msg}")
    def log_info(msg): logger.info(f"{prefix} {msg}")
    def log_warn(msg): logger.warning(f"{prefix} {msg}")
    def log_error(msg): logger.error(f"{prefix} {msg}")

    return log_trace, log_debug, log_info, log_warn, log_error


def configure_logging(debug: bool = False) -> None:
    """Attach a stderr handler to the offline_queue logger hierarchy.

    Args:
        debug: Emit TRACE and DEBUG records as well as INFO and above.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%H:%M:%S'
        ))
        logger.addHandler(handler)
    logger.setLevel(TRACE if debug else logging.INFO)
