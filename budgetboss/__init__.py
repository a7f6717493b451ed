"""
BudgetBoss - Source Package

An offline-first personal budgeting engine. Budget data lives in a local
key-value replica and is optionally reconciled with a remote row store.

DESIGN PRINCIPLES:
1. Local data survives any sync failure
2. The UI never waits on storage to reflect a user action
3. Conflicts are resolved by whole-record last-write-wins
4. Every mutation and sync step is logged
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "BudgetBoss Team"
