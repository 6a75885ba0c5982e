"""
Extraction of the base64 CSV attachment embedded in a raw email body.

Bank statement emails arrive as the raw RFC 822 text stored by the mail
receiver. Rather than walking the full MIME tree, the extractor targets the
single known export layout: the first base64 section of the message holds
the statement CSV.
"""

import base64
import binascii
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

BASE64_MARKER = 'Content-Transfer-Encoding: base64'
BOUNDARY_PREFIX = '--'
METADATA_PREFIXES = ('Content-ID:', 'X-Attachment-Id:')


def is_closing_boundary(line: str) -> bool:
    """Whether a line terminates the base64 section.

    A line must start with ``--`` and contain ``--`` again after that prefix,
    which matches a multipart terminator such as ``--abc123--``. Indented
    lines never end the section; content lines that happen to look like a
    terminator do.
    """
    return line.startswith(BOUNDARY_PREFIX) and BOUNDARY_PREFIX in line[len(BOUNDARY_PREFIX):]


def collect_base64_lines(lines: List[str]) -> Optional[List[str]]:
    """Return the lines following the base64 marker, or None without a marker."""
    start = None
    for index, line in enumerate(lines):
        if line.strip() == BASE64_MARKER:
            start = index + 1
            break

    if start is None:
        return None

    collected = []
    for line in lines[start:]:
        if is_closing_boundary(line):
            break
        collected.append(line)

    return collected


def build_payload(lines: List[str]) -> str:
    """Join body lines into one base64 string, skipping part metadata."""
    parts = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(METADATA_PREFIXES):
            continue
        parts.append(stripped)
    return ''.join(parts)


def extract_embedded_csv(email_text: str) -> Optional[str]:
    """Decode the embedded CSV text of an email, or None if there is none."""
    try:
        lines = collect_base64_lines(email_text.splitlines())

        if lines is None:
            logger.warning("No base64 encoded section found in email")
            return None

        payload = build_payload(lines)
        if not payload:
            logger.warning("Base64 section of email is empty")
            return None

        decoded = base64.b64decode(payload, validate=True)
        csv_text = decoded.decode('utf-8-sig')

        logger.info(f"Extracted {len(decoded)} bytes of embedded CSV content")
        return csv_text

    except (binascii.Error, ValueError) as e:
        # UnicodeDecodeError is a ValueError
        logger.error(f"Failed to decode embedded CSV: {e}")
        return None
    except Exception as e:
        logger.error(f"Unexpected error extracting embedded CSV: {e}")
        return None
