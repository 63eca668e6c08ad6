"""Outcome of one step of a channel run.

A channel run is made of fetch, reconcile, download, playlist, and cleanup
phases. Each phase records whether it succeeded, how many items it touched,
the errors it logged, and how long it took.
"""

from dataclasses import dataclass, field

from ...exceptions import ChansyncError


@dataclass(frozen=True)
class PhaseResult:
    """Results from a single channel phase.

    Attributes:
        success: Whether the phase completed without a fatal error.
        count: Number of items processed in this phase.
        errors: Errors that occurred during this phase.
        duration_seconds: Time taken to complete this phase.
        skipped: Whether the phase did not run at all.
    """

    success: bool
    count: int = 0
    errors: list[ChansyncError] = field(default_factory=list[ChansyncError])
    duration_seconds: float = 0.0
    skipped: bool = False
