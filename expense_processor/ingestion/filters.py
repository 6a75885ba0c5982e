"""
Exclusion filters applied to parsed statement records.

Two rules run in order. The blocklist rule drops any record whose
description contains a configured pattern; the sign rule then drops
positive amounts, which are credits and refunds rather than expenses.
A record is attributed to the first rule that excludes it.
"""

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from expense_processor.ingestion.csv_processor import ExpenseRecord
from expense_processor.storage.base import ObjectStorage

logger = logging.getLogger(__name__)


class ExclusionReason(str, Enum):
    PATTERN_MATCH = 'pattern-match'
    POSITIVE_AMOUNT = 'positive-amount'


class FilterPatternSet(BaseModel):
    """Case-insensitive substrings that exclude a record from expense totals."""

    model_config = ConfigDict(frozen=True)

    patterns: FrozenSet[str] = frozenset()

    @classmethod
    def empty(cls) -> 'FilterPatternSet':
        return cls()

    @classmethod
    def from_lines(cls, lines: Sequence[str]) -> 'FilterPatternSet':
        patterns = set()
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue
            patterns.add(stripped.casefold())
        return cls(patterns=frozenset(patterns))

    @classmethod
    def from_text(cls, text: str) -> 'FilterPatternSet':
        """Parse a blocklist file: one pattern per line, '#' starts a comment line."""
        return cls.from_lines(text.splitlines())

    def match(self, description: str) -> Optional[str]:
        """Return the first matching pattern (in sorted order) or None."""
        folded = description.casefold()
        for pattern in sorted(self.patterns):
            if pattern in folded:
                return pattern
        return None

    def __len__(self) -> int:
        return len(self.patterns)


class FilteredRecord(BaseModel):
    """An excluded record and the single reason it was excluded."""

    model_config = ConfigDict(frozen=True)

    record: ExpenseRecord
    reason: ExclusionReason


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: ExpenseRecord
    reason: Optional[ExclusionReason] = None

    @property
    def included(self) -> bool:
        return self.reason is None


class FilterResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    included: List[ExpenseRecord] = []
    excluded: List[FilteredRecord] = []

    def excluded_for(self, reason: ExclusionReason) -> List[FilteredRecord]:
        return [item for item in self.excluded if item.reason == reason]


def load_filter_patterns(storage: ObjectStorage, bucket: str, key: str) -> FilterPatternSet:
    """Load the blocklist from storage, degrading to an empty set on any failure."""
    try:
        content = storage.get_object(bucket, key)
        patterns = FilterPatternSet.from_text(content.decode('utf-8-sig'))
        logger.info(f"Loaded {len(patterns)} filter patterns from {bucket}/{key}")
        return patterns
    except Exception as e:
        logger.warning(f"Could not load filter patterns from {bucket}/{key}, no blocklist applied: {e}")
        return FilterPatternSet.empty()


def parse_amount(value: str) -> Optional[Decimal]:
    """Parse an amount as an exact decimal; None if it is not a finite number."""
    if value is None:
        return None
    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def classify(record: ExpenseRecord, patterns: FilterPatternSet) -> Classification:
    """Decide whether a record counts as an expense."""
    matched = patterns.match(record.description)
    if matched is not None:
        logger.info(f"Excluded by pattern '{matched}': {record.description} ({record.amount})")
        return Classification(record=record, reason=ExclusionReason.PATTERN_MATCH)

    amount = parse_amount(record.amount)
    if amount is None:
        logger.warning(f"Could not parse amount '{record.amount}' for {record.description}, keeping row")
    elif amount > 0:
        logger.info(f"Excluded positive amount: {record.description} ({record.amount})")
        return Classification(record=record, reason=ExclusionReason.POSITIVE_AMOUNT)

    logger.info(f"Included: {record.description} ({record.amount})")
    return Classification(record=record)


def apply_filters(records: Sequence[ExpenseRecord], patterns: FilterPatternSet) -> FilterResult:
    """Partition records into included and excluded, keeping input order."""
    included = []
    excluded = []

    for record in records:
        decision = classify(record, patterns)
        if decision.included:
            included.append(record)
        else:
            excluded.append(FilteredRecord(record=record, reason=decision.reason))

    logger.info(
        f"Filtered {len(records)} records: {len(included)} included, {len(excluded)} excluded"
    )
    return FilterResult(included=included, excluded=excluded)
