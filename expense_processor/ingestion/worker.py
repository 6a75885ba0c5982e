"""
Worker that runs the expense pipeline for storage notifications.
"""

import os
import logging
import uuid
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote_plus

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from expense_processor.ingestion.aggregator import AggregateGroup, aggregate
from expense_processor.ingestion.csv_processor import (
    ExpenseRecord,
    ParseOutcome,
    build_expense_records,
    parse_and_resolve,
)
from expense_processor.ingestion.filters import (
    FilteredRecord,
    FilterPatternSet,
    apply_filters,
    load_filter_patterns,
)
from expense_processor.ingestion.mime_extractor import extract_embedded_csv
from expense_processor.monitoring.logger_config import OperationLogger
from expense_processor.reporting.report_generator import (
    render_report,
    write_collapsed_csv,
    write_processed_csv,
)
from expense_processor.storage.base import ObjectStorage

load_dotenv()

logger = logging.getLogger(__name__)

OUTPUT_MODES = ('collapsed', 'processed')
CSV_CONTENT_TYPE = 'text/csv; charset=utf-8'
REPORT_CONTENT_TYPE = 'text/plain; charset=utf-8'


class ProcessingStatus(str, Enum):
    COMPLETED = 'completed'
    NO_ATTACHMENT = 'no_attachment'
    EMPTY_CSV = 'empty_csv'
    MISSING_COLUMNS = 'missing_columns'


class PipelineResult(BaseModel):
    """Everything produced from one email artifact."""

    model_config = ConfigDict(frozen=True)

    status: ProcessingStatus
    records: List[ExpenseRecord] = []
    included: List[ExpenseRecord] = []
    excluded: List[FilteredRecord] = []
    groups: List[AggregateGroup] = []
    report: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED


def base_name(key: str) -> str:
    """File name of a key without directories or extension."""
    name = PurePosixPath(key).name
    stem, dot, _ = name.rpartition('.')
    return stem if dot and stem else name


def output_key(key: str, suffix: str, prefix: str = '') -> str:
    """Derive an output key such as ``processed/statement_report.txt`` from a source key."""
    name = f"{base_name(key)}_{suffix}"
    prefix = prefix.strip('/')
    return f"{prefix}/{name}" if prefix else name


def run_pipeline(email_text: str, source_name: str, patterns: FilterPatternSet) -> PipelineResult:
    """Extract, parse, filter, collapse and report on one raw email."""
    csv_text = extract_embedded_csv(email_text)
    if csv_text is None:
        logger.warning(f"No embedded CSV found in {source_name}")
        return PipelineResult(status=ProcessingStatus.NO_ATTACHMENT)

    parsed = parse_and_resolve(csv_text)
    if parsed.outcome == ParseOutcome.EMPTY:
        logger.error(f"Embedded CSV in {source_name} is empty")
        return PipelineResult(status=ProcessingStatus.EMPTY_CSV)
    if parsed.outcome == ParseOutcome.MISSING_COLUMNS:
        logger.error(f"Embedded CSV in {source_name} is missing required columns")
        return PipelineResult(status=ProcessingStatus.MISSING_COLUMNS)

    records = build_expense_records(parsed.rows, parsed.indices)
    filtered = apply_filters(records, patterns)
    groups = aggregate(filtered.included)
    report = render_report(records, filtered.excluded, groups, source_name)

    return PipelineResult(
        status=ProcessingStatus.COMPLETED,
        records=records,
        included=filtered.included,
        excluded=filtered.excluded,
        groups=groups,
        report=report,
    )


class ExpenseWorker:
    """Processes email artifacts announced by storage notifications."""

    def __init__(self, storage: ObjectStorage = None):
        if storage is None:
            from expense_processor.storage.s3_storage import S3Storage
            storage = S3Storage()
        self.storage = storage

        self.output_prefix = os.getenv('OUTPUT_PREFIX', 'processed')
        self.filter_config_key = os.getenv('FILTER_CONFIG_KEY', 'filter-config.txt')
        self.output_mode = os.getenv('CSV_OUTPUT_MODE', 'collapsed').lower()

        if self.output_mode not in OUTPUT_MODES:
            raise ValueError(f"CSV_OUTPUT_MODE must be one of {OUTPUT_MODES}, got '{self.output_mode}'")

        logger.info(
            f"Expense worker initialized (output prefix: {self.output_prefix}, "
            f"mode: {self.output_mode}, filter config: {self.filter_config_key})"
        )

    def handle_event(self, event: Dict[str, Any]) -> str:
        """Process every record of an object-created notification batch."""
        records = event.get('Records') or []
        logger.info(f"Processing event with {len(records)} records")

        processed = 0
        for record in records:
            try:
                bucket, key = self.parse_record(record)
                if self.process_object(bucket, key):
                    processed += 1
            except Exception as e:
                logger.exception(f"Failed to process record: {e}")
                # Continue with next record
                continue

        summary = f"Successfully processed {processed} of {len(records)} records"
        logger.info(summary)
        return summary

    @staticmethod
    def parse_record(record: Dict[str, Any]) -> Tuple[str, str]:
        """Bucket and decoded key of one S3 notification record."""
        s3 = record['s3']
        bucket = s3['bucket']['name']
        key = unquote_plus(s3['object']['key'])
        return bucket, key

    def process_object(self, bucket: str, key: str) -> bool:
        """Run the pipeline for one stored email and write its artifacts."""
        correlation_id = str(uuid.uuid4())

        with OperationLogger('process_object', correlation_id, bucket=bucket, key=key) as op_logger:
            email_text = self.storage.get_text(bucket, key)
            patterns = load_filter_patterns(self.storage, bucket, self.filter_config_key)

            result = run_pipeline(email_text, key, patterns)

            if not result.completed:
                op_logger.warning("Object not processed", status=result.status.value)
                return False

            self.write_outputs(bucket, key, result)

            op_logger.info(
                "Object processed",
                rows=len(result.records),
                included=len(result.included),
                excluded=len(result.excluded),
                groups=len(result.groups),
            )
            return True

    def write_outputs(self, bucket: str, key: str, result: PipelineResult) -> List[str]:
        """Write the CSV and report for a completed result, returning the keys written."""
        if self.output_mode == 'processed':
            csv_key = output_key(key, 'processed.csv', self.output_prefix)
            csv_body = write_processed_csv(result.included)
        else:
            csv_key = output_key(key, 'collapsed.csv', self.output_prefix)
            csv_body = write_collapsed_csv(result.groups)

        report_key = output_key(key, 'report.txt', self.output_prefix)

        self.storage.put_object(bucket, csv_key, csv_body.encode('utf-8'), CSV_CONTENT_TYPE)
        self.storage.put_object(bucket, report_key, result.report.encode('utf-8'), REPORT_CONTENT_TYPE)

        return [csv_key, report_key]

    def health_check(self, bucket: str) -> bool:
        healthy = self.storage.health_check(bucket)
        logger.info(f"Health check - Storage ({bucket}): {healthy}")
        return healthy


def main():
    """Process a single stored email from the command line."""
    import argparse
    from expense_processor.monitoring.logger_config import ExpenseLogger

    parser = argparse.ArgumentParser(description='Process a bank statement email stored in S3')
    parser.add_argument('--bucket', '-b', default=os.getenv('BUCKET_NAME'), help='Bucket holding the email')
    parser.add_argument('--key', '-k', help='Key of the email object')
    parser.add_argument('--health-check', action='store_true', help='Check bucket access and exit')

    args = parser.parse_args()

    ExpenseLogger.setup_logging()

    if not args.bucket:
        parser.error('--bucket or BUCKET_NAME is required')

    worker = ExpenseWorker()

    if args.health_check:
        exit(0 if worker.health_check(args.bucket) else 1)

    if not args.key:
        parser.error('--key is required unless --health-check is given')

    try:
        ok = worker.process_object(args.bucket, args.key)
    except Exception as e:
        print(f"❌ Processing failed: {e}")
        exit(1)

    if ok:
        print(f"✅ Processed s3://{args.bucket}/{args.key}")
    else:
        print(f"❌ s3://{args.bucket}/{args.key} was not processed, see logs")
        exit(1)


if __name__ == "__main__":
    main()
