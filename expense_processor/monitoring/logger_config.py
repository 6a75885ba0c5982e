"""
Structured logging configuration for the expense processor.
"""

import os
import logging
import logging.handlers
import structlog
from typing import Any, Dict
from datetime import datetime

LOGGER_NAME = 'expense_processor'


class ExpenseLogger:
    """Routes stdlib and structlog output through one set of handlers."""

    _configured = False

    @staticmethod
    def setup_logging(
        log_level: str = None,
        log_format: str = None,
        log_file: str = None
    ) -> None:
        """Configure logging from arguments, falling back to LOG_* environment variables."""
        log_level = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
        log_format = log_format or os.getenv('LOG_FORMAT', 'json')
        log_file = log_file or os.getenv('LOG_FILE')

        level = getattr(logging, log_level, logging.INFO)
        handlers = [logging.StreamHandler()]

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            ))

        for handler in handlers:
            handler.setLevel(level)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                ExpenseLogger._order_context,
                structlog.processors.UnicodeDecoder(),
                ExpenseLogger._renderer(log_format),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        # Lambda pre-installs a handler on the root logger; replace it
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        root_logger.handlers.extend(handlers)

        # botocore is chatty at DEBUG
        logging.getLogger('botocore').setLevel(max(level, logging.INFO))

        ExpenseLogger._configured = True

        structlog.get_logger(LOGGER_NAME).info(
            "Logging initialized",
            log_level=log_level,
            log_format=log_format,
            log_file=log_file or "console"
        )

    @staticmethod
    def is_configured() -> bool:
        return ExpenseLogger._configured

    @staticmethod
    def _order_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Move the correlation, bucket and key fields to the end of the event."""
        for field in ('bucket', 'key', 'correlation_id'):
            if field in event_dict:
                event_dict[field] = event_dict.pop(field)
        return event_dict

    @staticmethod
    def _renderer(log_format: str):
        if log_format.lower() == 'json':
            return structlog.processors.JSONRenderer()
        return structlog.dev.ConsoleRenderer(colors=False)


def get_logger(correlation_id: str = None, **context):
    """Structlog logger bound to a correlation ID and any extra context."""
    logger = structlog.get_logger(LOGGER_NAME)
    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    if context:
        logger = logger.bind(**context)
    return logger


class OperationLogger:
    """Context manager logging the start, end and duration of an operation.

    Entering yields the bound logger so the body can add its own events
    under the same correlation ID.
    """

    def __init__(self, operation_name: str, correlation_id: str = None, **context):
        self.operation_name = operation_name
        self.logger = get_logger(correlation_id, operation=operation_name, **context)
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info(f"Operation started: {self.operation_name}")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.info(
                f"Operation completed: {self.operation_name}",
                duration_seconds=duration,
            )
        else:
            self.logger.error(
                f"Operation failed: {self.operation_name}",
                duration_seconds=duration,
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
            )

        return False  # Don't suppress exceptions
