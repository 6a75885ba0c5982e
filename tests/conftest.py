"""Shared fixtures: statement CSV samples, email builders and an in-memory store."""

from __future__ import annotations

import base64
import textwrap
from typing import Dict, List, Tuple

import pytest

from expense_processor.storage.base import ObjectStorage


class MemoryStorage(ObjectStorage):
    """Dictionary backed storage recording every write."""

    def __init__(self, objects: Dict[Tuple[str, str], bytes] = None):
        self.objects = dict(objects or {})
        self.writes: List[Tuple[str, str, str]] = []

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise FileNotFoundError(f"{bucket}/{key}") from None

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        self.objects[(bucket, key)] = body
        self.writes.append((bucket, key, content_type))

    def text(self, bucket: str, key: str) -> str:
        return self.objects[(bucket, key)].decode("utf-8")


def dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


SIMPLE_CSV = dedent(
    """
    "Value Date","Value Time","Type","Description","Beneficiary or CardHolder","Amount"
    2025-06-28,12:45:56,"Pending","Uber JOHANNESBURG ZA","Jake Daniels",-91.00
    2025-06-27,08:26:53,"Pending","Uber JOHANNESBURG ZA","Jake Daniels",-104.00
    2025-06-26,08:06:04,"Pending","Uber JOHANNESBURG ZA","Jake Daniels",-10.00
    2025-06-25,21:16:20,"POS Purchase","WOOLWORTHS CAPE TOWN","J Daniels",-142.07
    2025-06-24,21:24:43,"Apple Pay","WOOLWORTHS CAPE TOWN","J Daniels",-584.96
    2025-06-23,21:45:21,"Apple Pay","WOOLWORTHS CAPE TOWN","J Daniels",-269.99
    """
)


def gmail_style_email(csv_text: str, boundary: str = "000000000000a1b2c3d4e5f6") -> str:
    """Raw email in the layout Gmail uses for a single CSV attachment."""
    encoded = base64.encodebytes(csv_text.encode("utf-8")).decode("ascii")
    return (
        "MIME-Version: 1.0\n"
        "From: Bank <statements@bank.example>\n"
        "Subject: Transaction history\n"
        f'Content-Type: multipart/mixed; boundary="{boundary}"\n'
        "\n"
        f"--{boundary}\n"
        'Content-Type: text/plain; charset="UTF-8"\n'
        "\n"
        "Statement attached.\n"
        "\n"
        f"--{boundary}\n"
        'Content-Type: text/csv; name="history.csv"\n'
        'Content-Disposition: attachment; filename="history.csv"\n'
        "Content-Transfer-Encoding: base64\n"
        "Content-ID: <f_mc1abc0>\n"
        "X-Attachment-Id: f_mc1abc0\n"
        "\n"
        f"{encoded}"
        f"--{boundary}--\n"
    )


@pytest.fixture
def simple_csv() -> str:
    return SIMPLE_CSV


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's .env or shell settings out of the tests."""
    for name in ("OUTPUT_PREFIX", "FILTER_CONFIG_KEY", "CSV_OUTPUT_MODE", "REPORT_TIMEZONE"):
        monkeypatch.delenv(name, raising=False)
