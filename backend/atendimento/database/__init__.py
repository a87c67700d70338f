from .connection import Database, Transaction, format_ts, is_unique_violation

__all__ = ['Database', 'Transaction', 'format_ts', 'is_unique_violation']
