"""
Sync state machine and result records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from overall.core.priority.models import Priority


class SyncState(str, Enum):
    """Per-repository sync state."""

    IDLE = "Idle"
    FETCHING = "Fetching"
    CLASSIFYING = "Classifying"
    PERSISTING = "Persisting"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncState.DONE, SyncState.FAILED)


# Allowed forward transitions. FAILED is reachable from every working state.
_TRANSITIONS: dict[SyncState, frozenset[SyncState]] = {
    SyncState.IDLE: frozenset({SyncState.FETCHING, SyncState.FAILED}),
    SyncState.FETCHING: frozenset({SyncState.CLASSIFYING, SyncState.FAILED}),
    SyncState.CLASSIFYING: frozenset({SyncState.PERSISTING, SyncState.FAILED}),
    SyncState.PERSISTING: frozenset({SyncState.DONE, SyncState.FAILED}),
    SyncState.DONE: frozenset(),
    SyncState.FAILED: frozenset(),
}


@dataclass
class SyncOutcome:
    """
    Result of syncing one repository.

    Attributes:
        repo_id: Repository id (owner/name)
        state: Current (finally: terminal) state
        transitions: Every state visited, in order
        error: The exception that failed the sync, unmodified
        deferred: True when the remote asked us to back off; retry later
        retry_after: Seconds the remote asked us to wait, if it said
        attempts: Fetch attempts made
        branch_count: Branches persisted
        pr_count: Pull requests persisted
        priority: Priority persisted
    """

    repo_id: str
    state: SyncState = SyncState.IDLE
    transitions: list[SyncState] = field(default_factory=lambda: [SyncState.IDLE])
    error: Exception | None = None
    deferred: bool = False
    retry_after: int | None = None
    attempts: int = 0
    branch_count: int = 0
    pr_count: int = 0
    priority: Priority | None = None

    def advance(self, state: SyncState) -> None:
        """
        Move to the next state.

        Raises:
            ValueError: If the transition is not allowed
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid sync transition {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def fail(self, error: Exception) -> SyncOutcome:
        self.error = error
        self.advance(SyncState.FAILED)
        return self

    @property
    def succeeded(self) -> bool:
        return self.state == SyncState.DONE

    @property
    def failed(self) -> bool:
        return self.state == SyncState.FAILED


@dataclass
class BatchResult:
    """
    Aggregate result of a batch sync.

    A failed repository never aborts the batch; it is recorded here.

    Attributes:
        outcomes: One outcome per repository that was attempted
        skipped: Repository ids never started because the batch was cancelled
        listing_errors: Owner -> error for owners whose repository list failed
    """

    outcomes: list[SyncOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    listing_errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.failed and not o.deferred]

    @property
    def deferred(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.deferred]

    def outcome_for(self, repo_id: str) -> SyncOutcome | None:
        for outcome in self.outcomes:
            if outcome.repo_id == repo_id:
                return outcome
        return None

    def merge(self, other: BatchResult) -> None:
        self.outcomes.extend(other.outcomes)
        self.skipped.extend(other.skipped)
        self.listing_errors.update(other.listing_errors)
