"""
Logging configuration for the chatdesk service.

Plain text logs for local development, JSON lines (python-json-logger)
when LOG_FORMAT=json so the log shipper can index record ids and contacts.
"""
import logging
import logging.config
from datetime import datetime
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from chatdesk.config import LOG_FORMAT, LOG_LEVEL


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that always carries timestamp, level and logger name."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name


def build_logging_config(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> Dict[str, Any]:
    """Build the dictConfig mapping for the given level and format."""
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            },
            'json': {
                '()': CustomJsonFormatter,
                'format': '%(timestamp)s %(level)s %(logger)s %(message)s'
            },
        },
        'handlers': {
            'console': {
                'level': level,
                'class': 'logging.StreamHandler',
                'formatter': 'json' if fmt == 'json' else 'standard'
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': level,
            },
            'chatdesk': {
                'level': level,
                'propagate': True,
            },
            'sqlalchemy.engine': {
                'level': 'WARNING',
                'propagate': True,
            },
        },
    }


def configure_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    """Install the logging configuration. Call once at start-up."""
    logging.config.dictConfig(build_logging_config(level, fmt))
