"""Error taxonomy for the registry core.

Every error is scoped to the single operation that raised it; none of them is meant
to take the process down.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from welfaregrid.domain.model.enums import ClaimAction, ClaimStatus


class WelfareGridError(Exception):
    """Base class for registry core errors."""


class ValidationFailure(WelfareGridError, ValueError):
    """Malformed input, rejected before any state change."""


class NotFound(WelfareGridError, LookupError):
    """A referenced identity, claim, pair or jurisdiction does not exist."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ResolutionConflict(WelfareGridError):
    """The identity lock could not be acquired in time, or create-vs-find raced.

    Callers may retry with backoff. The resolver never answers a conflict by
    creating a second identity.
    """


class TransitionRejected(WelfareGridError):
    """A claim state-machine precondition was violated."""

    def __init__(
        self,
        *,
        claim_id: UUID,
        status: ClaimStatus,
        action: ClaimAction,
        rule: str,
    ) -> None:
        self.claim_id = claim_id
        self.status = status
        self.action = action
        self.rule = rule
        super().__init__(
            f"Cannot {action.value} claim {claim_id} in state {status.value}: {rule}"
        )


class ConfigurationUnavailable(WelfareGridError):
    """A threshold lookup failed; callers fall back to documented defaults."""


class PairConflict(WelfareGridError):
    """An active verified pair already exists, or the pair is already revoked."""


class DuplicateRecord(WelfareGridError):
    """A uniqueness constraint rejected a write that raced another writer."""
