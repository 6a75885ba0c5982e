from conftest import SIMPLE_CSV

from expense_processor.ingestion.csv_processor import (
    ColumnIndices,
    ExpenseRecord,
    ParseOutcome,
    build_expense_records,
    parse_and_resolve,
    resolve_columns,
)


def test_resolves_columns_in_any_order_and_case():
    indices = resolve_columns(["Desc", "value date", "Other", "AMOUNT"])
    # "Desc" is not "Description"
    assert not indices.is_valid

    indices = resolve_columns(["Description", " Value Date ", "Other", "amount"])
    assert (indices.description, indices.value_date, indices.amount) == (0, 1, 3)
    assert indices.is_valid


def test_quoted_header_resolution():
    result = parse_and_resolve('"Desc","Value Date","Other","Amount","description"\n')
    assert result.outcome == ParseOutcome.OK
    assert (result.indices.value_date, result.indices.amount) == (1, 3)
    assert result.indices.description == 4


def test_description_first_header_resolves_positions():
    result = parse_and_resolve('"description","VALUE DATE","Other","Amount"\n')
    assert (result.indices.value_date, result.indices.description, result.indices.amount) == (1, 0, 3)


def test_first_matching_header_cell_wins():
    indices = resolve_columns(["Amount", "Value Date", "Description", "amount"])
    assert indices.amount == 0


def test_missing_amount_column_is_invalid():
    result = parse_and_resolve('"Value Date","Description","Other"\n2025-01-01,Shop,x\n')
    assert result.outcome == ParseOutcome.MISSING_COLUMNS
    assert result.indices.amount == -1
    assert not result.indices.is_valid
    assert result.rows == []


def test_column_indices_validation():
    assert ColumnIndices(value_date=0, description=1, amount=2).is_valid
    assert not ColumnIndices(value_date=-1, description=1, amount=2).is_valid


def test_empty_text_is_empty_outcome():
    assert parse_and_resolve("").outcome == ParseOutcome.EMPTY
    assert parse_and_resolve("\n\n").outcome == ParseOutcome.EMPTY


def test_rows_after_header_are_returned(simple_csv):
    result = parse_and_resolve(simple_csv)
    assert result.ok
    assert len(result.rows) == 6
    assert result.rows[0][3] == "Uber JOHANNESBURG ZA"


def test_quoted_fields_with_commas_and_newlines():
    text = (
        'Value Date,Description,Amount\n'
        '2025-06-01,"SHOP, WITH COMMA",-5.00\n'
        '2025-06-02,"MULTI\nLINE",-6.00\n'
    )
    result = parse_and_resolve(text)
    records = build_expense_records(result.rows, result.indices)
    assert [r.description for r in records] == ["SHOP, WITH COMMA", "MULTI\nLINE"]


def test_short_rows_are_skipped():
    text = 'Value Date,Description,Amount\n2025-06-01,Shop\n2025-06-02,Cafe,-6.00\n'
    result = parse_and_resolve(text)
    records = build_expense_records(result.rows, result.indices)
    assert records == [ExpenseRecord(value_date="2025-06-02", description="Cafe", amount="-6.00")]


def test_records_from_statement_layout():
    result = parse_and_resolve(SIMPLE_CSV)
    records = build_expense_records(result.rows, result.indices)
    assert records[0] == ExpenseRecord(
        value_date="2025-06-28", description="Uber JOHANNESBURG ZA", amount="-91.00"
    )
    assert records[0].to_row() == ["2025-06-28", "Uber JOHANNESBURG ZA", "-91.00"]


def test_header_only_csv_has_no_rows():
    result = parse_and_resolve('"Value Date","Description","Amount"\n')
    assert result.ok
    assert result.rows == []
