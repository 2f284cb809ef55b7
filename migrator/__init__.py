"""
sql-migrator: versioned SQL schema migrations with a history ledger.
"""

__version__ = '1.0.0'
