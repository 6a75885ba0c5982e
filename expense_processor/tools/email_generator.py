"""
Generator for simulated bank statement emails.

Builds a statement CSV in the bank's export layout and wraps it in a
multipart email laid out like the ones the mail receiver stores: the CSV
part is base64 encoded and carries Content-ID / X-Attachment-Id headers.
"""

import csv
import random
import argparse
from datetime import datetime, timedelta
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Sequence
import pytz

STATEMENT_COLUMNS = [
    'Value Date', 'Value Time', 'Type', 'Description', 'Beneficiary or CardHolder', 'Amount'
]

# (description, low, high); negative ranges are purchases
MERCHANTS = [
    ("Uber JOHANNESBURG ZA", -180.0, -40.0),
    ("UBER EATS JOHANNESBURG", -350.0, -90.0),
    ("WOOLWORTHS CAPE TOWN", -900.0, -80.0),
    ("CHECKERS SEA POINT", -700.0, -60.0),
    ("APPLE.COM/BILL ITUNES.COM", -300.0, -20.0),
    ("NETFLIX.COM", -199.0, -199.0),
    ("ENGEN FOURWAYS", -1200.0, -400.0),
    ("Local Coffee Roasters", -65.0, -35.0),
]

CREDITS = [
    ("SALARY ACME PTY LTD", 25000.0, 32000.0),
    ("REFUND WOOLWORTHS CAPE TOWN", 50.0, 400.0),
]

TRANSACTION_TYPES = ["POS Purchase", "Apple Pay", "Pending", "Debit Order"]
CARDHOLDERS = ["Jake Daniels", "J Daniels"]

JOHANNESBURG_TZ = pytz.timezone('Africa/Johannesburg')


class StatementEmailGenerator:
    """Generates realistic statement CSV content and emails for testing."""

    def __init__(self, seed: int = None):
        self.random = random.Random(seed)

    def generate_transaction(self, credit: bool = False) -> Dict[str, Any]:
        description, low, high = self.random.choice(CREDITS if credit else MERCHANTS)

        days_ago = self.random.randint(0, 30)
        moment = datetime.now(JOHANNESBURG_TZ) - timedelta(
            days=days_ago,
            hours=self.random.randint(0, 23),
            minutes=self.random.randint(0, 59),
        )

        return {
            'Value Date': moment.strftime('%Y-%m-%d'),
            'Value Time': moment.strftime('%H:%M:%S'),
            'Type': 'Credit' if credit else self.random.choice(TRANSACTION_TYPES),
            'Description': description,
            'Beneficiary or CardHolder': self.random.choice(CARDHOLDERS),
            'Amount': f"{self.random.uniform(low, high):.2f}",
        }

    def generate_transactions(self, count: int, credit_ratio: float = 0.1) -> List[Dict[str, Any]]:
        transactions = [
            self.generate_transaction(credit=self.random.random() < credit_ratio)
            for _ in range(count)
        ]
        # Statements list the newest transaction first
        transactions.sort(key=lambda t: (t['Value Date'], t['Value Time']), reverse=True)
        return transactions

    def generate_csv(self, count: int = 50, credit_ratio: float = 0.1) -> str:
        return render_statement_csv(self.generate_transactions(count, credit_ratio))


def render_statement_csv(transactions: Sequence[Dict[str, Any]]) -> str:
    buffer = StringIO()
    writer = csv.DictWriter(buffer, fieldnames=STATEMENT_COLUMNS, quoting=csv.QUOTE_NONNUMERIC)
    writer.writeheader()
    writer.writerows(transactions)
    return buffer.getvalue()


def build_statement_email(
    csv_content: str,
    filename: str = 'statement.csv',
    sender: str = 'Bank Statements <statements@bank.example>',
    recipient: str = 'expenses@example.com',
    subject: str = None,
) -> str:
    """Wrap CSV content in a multipart email with a base64 attachment."""
    if subject is None:
        subject = f"Your statement - {Path(filename).stem}"

    msg = MIMEMultipart()
    msg['From'] = sender
    msg['To'] = recipient
    msg['Subject'] = subject

    msg.attach(MIMEText("Please find your transaction history attached.\n", 'plain'))

    part = MIMEBase('text', 'csv', name=filename)
    part.add_header('Content-Disposition', 'attachment', filename=filename)
    part.set_payload(csv_content.encode('utf-8'))
    encoders.encode_base64(part)
    # Gmail places these after the transfer encoding header
    part.add_header('Content-ID', f"<f_{Path(filename).stem}>")
    part.add_header('X-Attachment-Id', f"f_{Path(filename).stem}")
    msg.attach(part)

    return msg.as_string()


def main():
    """Main entry point for statement email generation."""
    parser = argparse.ArgumentParser(description='Generate a simulated bank statement email')
    parser.add_argument('--output', '-o', required=True, help='Output .eml file path')
    parser.add_argument('--count', '-c', type=int, default=50, help='Number of transactions to generate')
    parser.add_argument('--seed', type=int, help='Random seed for reproducible output')
    parser.add_argument('--csv-only', action='store_true', help='Write the bare CSV instead of an email')

    args = parser.parse_args()

    generator = StatementEmailGenerator(seed=args.seed)
    csv_content = generator.generate_csv(args.count)

    output_file = Path(args.output)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    if args.csv_only:
        output_file.write_text(csv_content, encoding='utf-8')
    else:
        output_file.write_text(
            build_statement_email(csv_content, f"{output_file.stem}.csv"), encoding='utf-8'
        )

    print(f"✅ Generated {args.count} transactions in {output_file}")


if __name__ == "__main__":
    main()
