from pathlib import Path

import pytest
from conftest import SIMPLE_CSV, gmail_style_email

from expense_processor.storage.local_storage import LocalStorage
from process_email_file import process_email_file


def test_local_storage_round_trip(tmp_path: Path):
    storage = LocalStorage(str(tmp_path))
    storage.put_object("bucket", "processed/a_report.txt", b"hello", "text/plain")

    assert (tmp_path / "bucket" / "processed" / "a_report.txt").read_bytes() == b"hello"
    assert storage.get_object("bucket", "processed/a_report.txt") == b"hello"
    assert storage.health_check("bucket")
    assert not storage.health_check("other")


def test_local_storage_rejects_keys_outside_root(tmp_path: Path):
    storage = LocalStorage(str(tmp_path / "root"))
    with pytest.raises(ValueError):
        storage.put_object("", "../escape.txt", b"x", "text/plain")


def test_process_email_file_writes_outputs(tmp_path: Path):
    email_path = tmp_path / "june.eml"
    email_path.write_text(gmail_style_email(SIMPLE_CSV), encoding="utf-8")
    blocklist = tmp_path / "filter-config.txt"
    blocklist.write_text("# none of these match\nINTEREST\n", encoding="utf-8")
    output_dir = tmp_path / "out"

    assert process_email_file(str(email_path), str(output_dir), str(blocklist))

    collapsed = (output_dir / "processed" / "june_collapsed.csv").read_text(encoding="utf-8")
    assert "Uber,-205.00" in collapsed
    report = (output_dir / "processed" / "june_report.txt").read_text(encoding="utf-8")
    assert "Source: june.eml" in report


def test_process_email_file_without_attachment(tmp_path: Path):
    email_path = tmp_path / "plain.eml"
    email_path.write_text("Subject: hi\n\nnothing attached\n", encoding="utf-8")

    assert not process_email_file(str(email_path), str(tmp_path / "out"))
    assert not (tmp_path / "out").exists()
