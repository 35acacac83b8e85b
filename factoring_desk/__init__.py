"""
Factoring Desk

Collections back-office engine for weekly-installment factoring advances:
installment schedules, closure ledgers, payment posting with fee tracking,
and portfolio rollups. All monetary math uses Decimal.
"""

__version__ = "1.0.0"
