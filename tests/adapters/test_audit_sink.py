from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from welfaregrid.adapters.audit import LoggingAuditSink, SqlAlchemyAuditSink
from welfaregrid.domain.model import AuditSubject

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork


def test_sqlalchemy_sink_appends_json_safe_records(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    sink = SqlAlchemyAuditSink(sqlite_unit_of_work)
    claim_id = uuid4()
    other_id = uuid4()

    sink.record(
        "claim.approve",
        (AuditSubject.CLAIM, claim_id),
        "officer",
        {"amount": Decimal("1500.00"), "jurisdiction_id": other_id},
    )
    sink.record("claim.disburse", (AuditSubject.CLAIM, claim_id), "cashier")

    with sqlite_unit_of_work() as uow:
        events = uow.repositories.audit_events.for_subject(AuditSubject.CLAIM, str(claim_id))

    assert [event.event for event in events] == ["claim.approve", "claim.disburse"]
    assert events[0].actor == "officer"
    assert events[0].properties == {"amount": "1500.00", "jurisdiction_id": str(other_id)}
    assert events[1].properties == {}


def test_logging_sink_emits_one_line_per_record(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingAuditSink()
    pair_id = uuid4()

    with caplog.at_level(logging.INFO, logger="welfaregrid.audit"):
        sink.record("pair.revoked", (AuditSubject.VERIFIED_PAIR, pair_id), "supervisor", {"b": 1})

    assert len(caplog.records) == 1
    assert f"pair.revoked verified_pair:{pair_id} by supervisor" in caplog.text
    assert '{"b": 1}' in caplog.text
