"""
CSV parser and column resolver for bank statement exports.
"""

import csv
import logging
from enum import Enum
from io import StringIO
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

VALUE_DATE_COLUMN = 'Value Date'
DESCRIPTION_COLUMN = 'Description'
AMOUNT_COLUMN = 'Amount'


class ExpenseRecord(BaseModel):
    """One statement transaction. Negative amounts are debits."""

    model_config = ConfigDict(frozen=True)

    value_date: str
    description: str
    amount: str

    def to_row(self) -> List[str]:
        return [self.value_date, self.description, self.amount]


class ColumnIndices(BaseModel):
    """Zero-based positions of the required columns, -1 when absent."""

    model_config = ConfigDict(frozen=True)

    value_date: int
    description: int
    amount: int

    @property
    def is_valid(self) -> bool:
        return self.value_date != -1 and self.description != -1 and self.amount != -1

    @property
    def max_index(self) -> int:
        return max(self.value_date, self.description, self.amount)


class ParseOutcome(str, Enum):
    OK = 'ok'
    EMPTY = 'empty'
    MISSING_COLUMNS = 'missing_columns'


class ParseResult(BaseModel):
    """Outcome of parsing a CSV document; indices and rows are set only when OK."""

    model_config = ConfigDict(frozen=True)

    outcome: ParseOutcome
    indices: Optional[ColumnIndices] = None
    rows: List[List[str]] = []
    header: List[str] = []

    @property
    def ok(self) -> bool:
        return self.outcome == ParseOutcome.OK


def parse_rows(csv_text: str) -> List[List[str]]:
    """Parse CSV text into raw rows, dropping blank lines."""
    reader = csv.reader(StringIO(csv_text))
    return [row for row in reader if row]


def find_column(header: Sequence[str], name: str) -> int:
    """Index of the first header cell equal to name, ignoring case and padding."""
    wanted = name.lower()
    for index, cell in enumerate(header):
        if cell.strip().lower() == wanted:
            return index
    return -1


def resolve_columns(header: Sequence[str]) -> ColumnIndices:
    return ColumnIndices(
        value_date=find_column(header, VALUE_DATE_COLUMN),
        description=find_column(header, DESCRIPTION_COLUMN),
        amount=find_column(header, AMOUNT_COLUMN),
    )


def parse_and_resolve(csv_text: str) -> ParseResult:
    """Parse CSV text and locate the value date, description and amount columns."""
    rows = parse_rows(csv_text)

    if not rows:
        logger.error("CSV content has no rows")
        return ParseResult(outcome=ParseOutcome.EMPTY)

    header = rows[0]
    indices = resolve_columns(header)

    if not indices.is_valid:
        missing = [
            name for name, index in (
                (VALUE_DATE_COLUMN, indices.value_date),
                (DESCRIPTION_COLUMN, indices.description),
                (AMOUNT_COLUMN, indices.amount),
            ) if index == -1
        ]
        logger.error(f"Missing required columns: {missing} (header: {header})")
        return ParseResult(outcome=ParseOutcome.MISSING_COLUMNS, indices=indices, header=header)

    logger.info(
        f"Resolved columns - Value Date: {indices.value_date}, "
        f"Description: {indices.description}, Amount: {indices.amount}"
    )
    return ParseResult(outcome=ParseOutcome.OK, indices=indices, rows=rows[1:], header=header)


def build_expense_records(rows: Sequence[Sequence[str]], indices: ColumnIndices) -> List[ExpenseRecord]:
    """Build records from raw rows, skipping rows too short for the resolved columns."""
    records = []
    skipped = 0

    for row_number, row in enumerate(rows, start=1):
        if len(row) <= indices.max_index:
            skipped += 1
            logger.debug(f"Row {row_number}: skipped, only {len(row)} fields")
            continue

        records.append(ExpenseRecord(
            value_date=row[indices.value_date],
            description=row[indices.description],
            amount=row[indices.amount],
        ))

    if skipped:
        logger.info(f"Skipped {skipped} rows with insufficient fields")

    logger.info(f"Parsed {len(records)} expense records")
    return records
