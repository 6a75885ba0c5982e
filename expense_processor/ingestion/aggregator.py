"""
Merchant normalization and per-merchant aggregation of expense records.
"""

import logging
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Context, Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from expense_processor.ingestion.csv_processor import ExpenseRecord
from expense_processor.ingestion.filters import parse_amount

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')

# Wide enough that sums and quantizing never round
EXACT_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)


class MerchantAlias(NamedTuple):
    pattern: str
    canonical_name: str


# Order matters: the first pattern found in a description wins.
DEFAULT_MERCHANT_ALIASES: Tuple[MerchantAlias, ...] = (
    MerchantAlias('UBER', 'Uber'),
    MerchantAlias('BOLT.EU', 'Bolt'),
    MerchantAlias('APPLE.COM', 'Apple'),
    MerchantAlias('ITUNES', 'Apple'),
    MerchantAlias('WOOLWORTHS', 'Woolworths'),
    MerchantAlias('CHECKERS', 'Checkers'),
    MerchantAlias('PICK N PAY', 'Pick n Pay'),
    MerchantAlias('DISCHEM', 'Dis-Chem'),
    MerchantAlias('DIS-CHEM', 'Dis-Chem'),
    MerchantAlias('CLICKS', 'Clicks'),
    MerchantAlias('TAKEALOT', 'Takealot'),
    MerchantAlias('NETFLIX', 'Netflix'),
    MerchantAlias('SPOTIFY', 'Spotify'),
    MerchantAlias('GOOGLE', 'Google'),
    MerchantAlias('AMAZON', 'Amazon'),
    MerchantAlias('ENGEN', 'Engen'),
    MerchantAlias('SASOL', 'Sasol'),
    MerchantAlias('VODACOM', 'Vodacom'),
)


def normalize(description: str, aliases: Sequence[MerchantAlias] = DEFAULT_MERCHANT_ALIASES) -> str:
    """Map a raw statement description to its canonical merchant name."""
    upper = description.strip().upper()
    for alias in aliases:
        if alias.pattern.upper() in upper:
            return alias.canonical_name
    return description


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum amounts without rounding to the context precision."""
    with localcontext(EXACT_CONTEXT):
        return sum(values, Decimal('0'))


def format_amount(value: Decimal) -> str:
    """Render an amount rounded half up to cents."""
    with localcontext(EXACT_CONTEXT):
        return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def record_amount(record: ExpenseRecord) -> Decimal:
    amount = parse_amount(record.amount)
    if amount is None:
        logger.warning(f"Unparsable amount '{record.amount}' for {record.description}, counted as 0")
        return Decimal('0')
    return amount


class AggregateGroup(BaseModel):
    """All included records sharing one canonical description.

    Groups are immutable; ``add_record`` returns a new group.
    """

    model_config = ConfigDict(frozen=True)

    description: str
    value_dates: FrozenSet[str]
    total_amount: Decimal
    source_records: Tuple[ExpenseRecord, ...]

    @classmethod
    def from_record(cls, record: ExpenseRecord, description: str = None) -> 'AggregateGroup':
        return cls(
            description=description if description is not None else record.description,
            value_dates=frozenset([record.value_date]),
            total_amount=record_amount(record),
            source_records=(record,),
        )

    def add_record(self, record: ExpenseRecord) -> 'AggregateGroup':
        return self.model_copy(update={
            'value_dates': self.value_dates | {record.value_date},
            'total_amount': exact_sum((self.total_amount, record_amount(record))),
            'source_records': self.source_records + (record,),
        })

    @property
    def latest_date(self) -> str:
        # String comparison; assumes ISO formatted dates
        return max(self.value_dates)

    @property
    def sorted_dates(self) -> List[str]:
        return sorted(self.value_dates)

    @property
    def transaction_count(self) -> int:
        return len(self.source_records)

    @property
    def rounded_total(self) -> str:
        return format_amount(self.total_amount)

    def to_row(self) -> List[str]:
        return [self.latest_date, self.description, self.rounded_total]


def aggregate(
    records: Sequence[ExpenseRecord],
    aliases: Sequence[MerchantAlias] = DEFAULT_MERCHANT_ALIASES,
) -> List[AggregateGroup]:
    """Collapse records into one group per canonical merchant, sorted by name."""
    groups: Dict[str, AggregateGroup] = {}

    for record in records:
        name = normalize(record.description, aliases)
        existing = groups.get(name)
        if existing is None:
            groups[name] = AggregateGroup.from_record(record, name)
        else:
            groups[name] = existing.add_record(record)

    result = sorted(groups.values(), key=lambda group: group.description.casefold())

    logger.info(f"Collapsed {len(records)} records into {len(result)} groups")
    return result
