"""
Status and priority enums.

BranchStatus values are persisted in the branches table; Priority is
persisted as its integer tier on the repositories table.
"""

from __future__ import annotations

from enum import Enum


class BranchStatus(str, Enum):
    """Per-branch status relative to the repository's default branch."""

    DEFAULT = "Default"
    READY_REVIEW = "ReadyReview"
    NEEDS_SYNC = "NeedsSync"
    READY_FOR_PR = "ReadyForPR"
    UP_TO_DATE = "UpToDate"

    @property
    def is_unmerged(self) -> bool:
        """Branch carries work that has not reached the default branch."""
        return self in (BranchStatus.READY_FOR_PR, BranchStatus.NEEDS_SYNC)


class Priority(int, Enum):
    """
    Repository priority tier. Lower value is more urgent.

    Tiers compare as integers, so ``min()`` over a collection of
    priorities yields the most urgent one.
    """

    NEEDS_SYNC = 0
    LOCAL_CHANGES = 1
    STALE = 2
    COMPLETE = 3

    @property
    def label(self) -> str:
        """Kebab-case name used in exports and the UI."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def from_label(cls, label: str) -> Priority:
        """Parse a kebab-case label back into a Priority."""
        key = label.strip().upper().replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown priority: {label}") from None
