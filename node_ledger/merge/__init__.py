"""Merge engine package."""

from node_ledger.merge.engine import MergeEngine, MergePolicy, assign_ids

__all__ = ["MergeEngine", "MergePolicy", "assign_ids"]
