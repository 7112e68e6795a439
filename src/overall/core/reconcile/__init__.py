"""Reconciliation of remote and local state into the cache."""

from overall.core.reconcile.engine import ReconciliationEngine
from overall.core.reconcile.models import BatchResult, SyncOutcome, SyncState

__all__ = ["BatchResult", "ReconciliationEngine", "SyncOutcome", "SyncState"]
