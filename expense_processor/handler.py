"""
Lambda entry point: S3 object-created notifications for incoming emails.
"""

from expense_processor.ingestion.worker import ExpenseWorker
from expense_processor.monitoring.logger_config import ExpenseLogger

_worker = None


def get_worker() -> ExpenseWorker:
    """Build the worker once per container."""
    global _worker
    if _worker is None:
        _worker = ExpenseWorker()
    return _worker


def lambda_handler(event, context):
    if not ExpenseLogger.is_configured():
        ExpenseLogger.setup_logging()
    return get_worker().handle_event(event)
