"""Pure status and priority classification."""

from overall.core.priority.classifier import (
    classify_branch,
    classify_branches,
    compute_priority,
    group_priority,
    open_pr_heads,
)
from overall.core.priority.models import BranchStatus, Priority

__all__ = [
    "BranchStatus",
    "Priority",
    "classify_branch",
    "classify_branches",
    "compute_priority",
    "group_priority",
    "open_pr_heads",
]
