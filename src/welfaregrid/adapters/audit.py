"""Audit sinks: an append-only table and a plain logger."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

from welfaregrid.config import AUDIT_LOGGER
from welfaregrid.domain.model import AuditEvent, AuditSubject, utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from welfaregrid.domain.ports import RegistryUnitOfWorkFactory

log = getLogger(__name__)


def _json_safe(properties: Mapping[str, Any] | None) -> dict[str, Any]:
    if not properties:
        return {}
    # round-trip so UUIDs, Decimals and datetimes land as strings
    return json.loads(json.dumps(dict(properties), default=str))


class SqlAlchemyAuditSink:
    """Write each record in its own short transaction.

    Callers invoke the sink after their own unit of work has ended, never inside it.
    """

    def __init__(self, unit_of_work: RegistryUnitOfWorkFactory) -> None:
        self._unit_of_work = unit_of_work

    def record(
        self,
        event: str,
        subject: tuple[AuditSubject, UUID | str],
        actor: str,
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        subject_type, subject_id = subject
        entry = AuditEvent(
            event=event,
            subject_type=AuditSubject(subject_type),
            subject_id=str(subject_id),
            actor=actor,
            properties=_json_safe(properties),
            recorded_at=utcnow(),
        )
        with self._unit_of_work() as uow:
            uow.repositories.audit_events.add(entry)
            uow.commit()


class LoggingAuditSink:
    """Emit audit records as structured INFO log lines."""

    def __init__(self, logger_name: str = AUDIT_LOGGER) -> None:
        self._log = getLogger(logger_name)

    def record(
        self,
        event: str,
        subject: tuple[AuditSubject, UUID | str],
        actor: str,
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        subject_type, subject_id = subject
        self._log.info(
            "%s %s:%s by %s %s",
            event,
            AuditSubject(subject_type).value,
            subject_id,
            actor,
            json.dumps(_json_safe(properties), sort_keys=True),
        )
