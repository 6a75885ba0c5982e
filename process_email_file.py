#!/usr/bin/env python3

"""
Process a bank statement email saved on disk and write its artifacts locally.
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from expense_processor.ingestion.filters import FilterPatternSet
from expense_processor.ingestion.worker import ExpenseWorker, run_pipeline
from expense_processor.monitoring.logger_config import ExpenseLogger
from expense_processor.storage.local_storage import LocalStorage

load_dotenv()


def load_patterns(path: str) -> FilterPatternSet:
    if not path:
        return FilterPatternSet.empty()
    try:
        return FilterPatternSet.from_text(Path(path).read_text(encoding='utf-8'))
    except OSError as e:
        print(f"   Could not read filter config {path}: {e}")
        return FilterPatternSet.empty()


def process_email_file(email_path: str, output_dir: str, filter_config: str = None) -> bool:
    """Run the pipeline on one email file and write the CSV and report."""
    email_file = Path(email_path)

    print(f"Processing {email_file}")
    print("=" * 55)

    try:
        email_text = email_file.read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        print(f"❌ Could not read {email_file}: {e}")
        return False

    patterns = load_patterns(filter_config)
    print(f"   Filter patterns: {len(patterns)}")

    result = run_pipeline(email_text, email_file.name, patterns)

    if not result.completed:
        print(f"❌ Not processed: {result.status.value}")
        return False

    print(f"   Rows: {len(result.records)}")
    print(f"   Included: {len(result.included)}")
    print(f"   Excluded: {len(result.excluded)}")
    print(f"   Groups: {len(result.groups)}")

    worker = ExpenseWorker(storage=LocalStorage(output_dir))
    written = worker.write_outputs('', email_file.name, result)

    for key in written:
        print(f"   Wrote {Path(output_dir) / key}")

    print(f"\n🎉 Processing completed!")
    return True


def main():
    parser = argparse.ArgumentParser(description='Process a bank statement email file')
    parser.add_argument('email', help='Path to the raw email (.eml) file')
    parser.add_argument('--output-dir', '-o', default='output', help='Directory for the CSV and report')
    parser.add_argument('--filter-config', '-f', help='Blocklist file, one pattern per line')
    parser.add_argument('--mode', '-m', choices=['collapsed', 'processed'], help='CSV output mode')

    args = parser.parse_args()

    if args.mode:
        os.environ['CSV_OUTPUT_MODE'] = args.mode

    ExpenseLogger.setup_logging(log_format=os.getenv('LOG_FORMAT', 'console'))

    ok = process_email_file(args.email, args.output_dir, args.filter_config)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
