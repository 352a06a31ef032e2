"""
Node Ledger - Source Package

Record persistence and import reconciliation for node earnings and
license inventory, backed by a local key-value store.

DESIGN PRINCIPLES:
1. Parse → Validate → Reconcile → Merge → Commit, in that order
2. Report every problem at once, never fail on the first
3. No silent corrections
4. A batch is committed in one write or not at all
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Node Ledger Team"
