"""
Rendering of the collapsed expense CSV, the processed CSV and the text report.
"""

import csv
import os
import logging
from datetime import datetime
from decimal import MAX_EMAX, MIN_EMIN, Context, Decimal, ROUND_HALF_UP, localcontext
from io import StringIO
from typing import List, Optional, Sequence

import pytz
from dotenv import load_dotenv

from expense_processor.ingestion.aggregator import AggregateGroup, exact_sum, format_amount
from expense_processor.ingestion.csv_processor import ExpenseRecord
from expense_processor.ingestion.filters import ExclusionReason, FilteredRecord

load_dotenv()

logger = logging.getLogger(__name__)

PROCESSED_HEADER = ['Value Date', 'Description', 'Amount']
COLLAPSED_HEADER = ['Value Dates', 'Description', 'Total Amount']

RULE = '=' * 60
SUBRULE = '-' * 60
ONE_PLACE = Decimal('0.1')


def write_processed_csv(records: Sequence[ExpenseRecord]) -> str:
    """One row per included record, fields as they appeared in the statement."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(PROCESSED_HEADER)
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue()


def write_collapsed_csv(groups: Sequence[AggregateGroup]) -> str:
    """One row per merchant group: latest date, canonical name, rounded total."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(COLLAPSED_HEADER)
    for group in groups:
        writer.writerow(group.to_row())
    return buffer.getvalue()


def percentage(part: int, whole: int) -> str:
    """Percentage to one decimal place; 0.0 when whole is zero."""
    if whole == 0:
        return '0.0'
    value = Decimal(part) * 100 / Decimal(whole)
    return str(value.quantize(ONE_PLACE, rounding=ROUND_HALF_UP))


def average_amount(total: Decimal, count: int) -> str:
    """Mean of a total over count rows, rounded to cents; 0.00 for no rows."""
    if count == 0:
        return format_amount(Decimal('0'))
    # Enough digits for every whole digit of the total plus the rounding digits
    precision = max(total.adjusted(), 0) + 10
    with localcontext(Context(prec=precision, Emax=MAX_EMAX, Emin=MIN_EMIN)):
        mean = total / Decimal(count)
    return format_amount(mean)


def report_timezone():
    name = os.getenv('REPORT_TIMEZONE', 'Africa/Johannesburg')
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown REPORT_TIMEZONE '{name}', using UTC")
        return pytz.UTC


def _record_line(record: ExpenseRecord) -> str:
    return f"    {record.value_date} | {record.description} | {record.amount}"


def _summary_section(
    all_records: Sequence[ExpenseRecord],
    excluded: Sequence[FilteredRecord],
    groups: Sequence[AggregateGroup],
    included_count: int,
    grand_total: Decimal,
) -> List[str]:
    positive = sum(1 for item in excluded if item.reason == ExclusionReason.POSITIVE_AMOUNT)
    pattern = sum(1 for item in excluded if item.reason == ExclusionReason.PATTERN_MATCH)

    return [
        'SUMMARY',
        SUBRULE,
        f"Total rows processed: {len(all_records)}",
        f"Included rows: {included_count} (collapsed into {len(groups)} groups)",
        f"Excluded rows: {len(excluded)}",
        f"  Positive amounts (credits/refunds): {positive}",
        f"  Pattern matches (blocklist): {pattern}",
        f"Total expenses: {format_amount(grand_total)}",
        '',
    ]


def _groups_section(groups: Sequence[AggregateGroup]) -> List[str]:
    lines = ['COLLAPSED EXPENSES', SUBRULE]
    if not groups:
        lines.append('(none)')
    for group in groups:
        lines.append(
            f"{group.description}: {group.rounded_total} ({group.transaction_count} transactions)"
        )
        lines.append(f"  Dates: {', '.join(group.sorted_dates)}")
        for record in group.source_records:
            lines.append(_record_line(record))
    lines.append('')
    return lines


def _excluded_section(excluded: Sequence[FilteredRecord]) -> List[str]:
    lines = []
    titles = (
        (ExclusionReason.POSITIVE_AMOUNT, 'EXCLUDED: POSITIVE AMOUNTS'),
        (ExclusionReason.PATTERN_MATCH, 'EXCLUDED: PATTERN MATCHES'),
    )
    for reason, title in titles:
        items = [item for item in excluded if item.reason == reason]
        lines.append(f"{title} ({len(items)})")
        lines.append(SUBRULE)
        if not items:
            lines.append('(none)')
        for item in items:
            lines.append(_record_line(item.record))
        lines.append('')
    return lines


def _statistics_section(
    groups: Sequence[AggregateGroup],
    total_count: int,
    included_count: int,
    excluded_count: int,
    grand_total: Decimal,
) -> List[str]:
    lines = ['STATISTICS', SUBRULE]

    if groups:
        largest = max(groups, key=lambda group: group.total_amount.copy_abs())
        lines.append(f"Largest expense group: {largest.description} ({largest.rounded_total})")

        busiest = max(groups, key=lambda group: group.transaction_count)
        if busiest.transaction_count > 1:
            lines.append(
                f"Most frequent merchant: {busiest.description} ({busiest.transaction_count} transactions)"
            )

    lines.append(f"Average per transaction: {average_amount(grand_total, included_count)}")

    lines.append(f"Filter efficiency: {percentage(excluded_count, total_count)}% of rows excluded")
    lines.append(
        f"Collapse efficiency: {percentage(included_count - len(groups), included_count)}% reduction "
        f"({included_count} rows -> {len(groups)} groups)"
    )
    return lines


def render_report(
    all_records: Sequence[ExpenseRecord],
    excluded: Sequence[FilteredRecord],
    groups: Sequence[AggregateGroup],
    source_name: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render the plain text processing report for one statement."""
    if generated_at is None:
        generated_at = datetime.now(report_timezone())

    included_count = sum(group.transaction_count for group in groups)
    grand_total = exact_sum(group.total_amount for group in groups)

    lines = [
        'EXPENSE PROCESSING REPORT',
        RULE,
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        f"Source: {source_name}",
        '',
    ]
    lines.extend(_summary_section(all_records, excluded, groups, included_count, grand_total))
    lines.extend(_groups_section(groups))
    lines.extend(_excluded_section(excluded))
    lines.extend(_statistics_section(
        groups, len(all_records), included_count, len(excluded), grand_total
    ))

    return '\n'.join(lines) + '\n'
