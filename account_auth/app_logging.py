"""Structured logging setup and the activity/diagnostic log sinks."""

import logging
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from . import config

ACTIVITY_LOGGER = 'account_auth.activity'
DIAGNOSTIC_LOGGER = 'account_auth.diagnostic'


def setup_logger(level: Any = config.LOGLEVEL,
                 handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Send all records through a JSON formatter on stderr."""
    log_handler = handler or logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    log_handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(log_handler)
    logger.setLevel(level)
    return logger


class ActivityLog(object):
    """
    Emits activity events and diagnostic records.

    Activity events are the user-facing audit trail (``device.created``,
    ``account.login``...) and go to :data:`ACTIVITY_LOGGER`. Diagnostic
    records are operational breadcrumbs keyed by ``op`` and go to
    :data:`DIAGNOSTIC_LOGGER`. Both carry their payload under a single
    ``extra`` key so it survives the JSON formatter intact.
    """

    def __init__(self, activity: Optional[logging.Logger] = None,
                 diagnostic: Optional[logging.Logger] = None) -> None:
        self._activity = activity or logging.getLogger(ACTIVITY_LOGGER)
        self._diagnostic = diagnostic or logging.getLogger(DIAGNOSTIC_LOGGER)

    def activity_event(self, data: Dict[str, Any]) -> None:
        """Record an activity event; ``data['event']`` names it."""
        self._activity.info(data.get('event', 'activity'),
                            extra={'activity': data})

    def info(self, data: Dict[str, Any]) -> None:
        """Record a diagnostic event; ``data['op']`` names it."""
        self._diagnostic.info(data.get('op', 'info'),
                              extra={'diagnostic': data})

    def error(self, data: Dict[str, Any]) -> None:
        """Record a diagnostic failure."""
        self._diagnostic.error(data.get('op', 'error'),
                               extra={'diagnostic': data})
