"""
Expense Processor

Turns bank statement emails dropped into object storage into merchant-level
expense totals: the embedded CSV attachment is decoded, filtered against a
blocklist, collapsed per merchant and written back as a CSV plus a report.
"""

__version__ = "0.1.0"
