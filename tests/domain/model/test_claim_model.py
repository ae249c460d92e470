from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from welfaregrid.domain.model import AssistanceType, Claim, ClaimStatus, FraudCheckTask


def test_new_claim_awaits_fraud_check() -> None:
    claim = Claim(
        identity_id=uuid4(),
        jurisdiction_id=uuid4(),
        assistance_type=AssistanceType.BURIAL,
        amount=Decimal("5000.00"),
    )

    assert claim.awaiting_fraud_check
    assert not claim.is_terminal
    assert claim.terminal_markers() == (None, None, None)
    assert claim.risk_assessment is None


def test_terminal_statuses() -> None:
    terminal = {status for status in ClaimStatus if status.is_terminal}

    assert terminal == {ClaimStatus.DISBURSED, ClaimStatus.REJECTED, ClaimStatus.CANCELLED}


def test_outbox_task_completion() -> None:
    task = FraudCheckTask(claim_id=uuid4())
    when = datetime(2025, 3, 1, tzinfo=UTC)

    task.complete("applied", at=when)

    assert task.is_complete
    assert task.outcome == "applied"
    assert task.completed_at == when
