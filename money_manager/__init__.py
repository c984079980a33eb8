"""
Money Manager - Source Package

Records income and expense transactions, answers filtered queries and
summaries over them, and enforces a 12-hour edit window after creation.

DESIGN PRINCIPLES:
1. Editability is derived from created_at, never trusted from a cached flag
2. Amounts are exact decimals
3. Every mutation is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Money Manager Team"
