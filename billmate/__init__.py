"""
Bill Mate - Source Package

A shared-house expense splitter. The house manager keeps bills and
payments in a Google Sheet; everyone sees who owes the manager what.

DESIGN PRINCIPLES:
1. The balance engine is pure - plain records in, balances out
2. Storage is injected, never reached through globals
3. Device state is explicit, not hidden in singletons
4. Every significant action is auditable
"""

__version__ = "1.0.0"
__author__ = "Bill Mate Team"
