"""
Banking Ledger

A simulated retail-banking ledger: accounts, deposits, withdrawals and
transfers with Decimal arithmetic, an append-only transaction ledger and
balance threshold alerting.
"""

__version__ = "1.0.0"
