# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from dotenv import load_dotenv

from welfaregrid import app
from welfaregrid.adapters.intake import IntakePayload
from welfaregrid.config import (
    ACTOR_ENV,
    ConfigurationError,
    ThresholdKey,
    configure_logging,
    default_actor,
)
from welfaregrid.domain.errors import WelfareGridError
from welfaregrid.domain.model import AssistanceType, ClaimAction, PairStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from welfaregrid.domain.fraud_check import FraudCheckOutcome
    from welfaregrid.domain.matching import CandidateMatch
    from welfaregrid.domain.model import Claim, Identity, Jurisdiction, VerifiedPair
    from welfaregrid.domain.risk import RiskReport

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:  # noqa: PLR0915
    parser = argparse.ArgumentParser(description="Welfare registry core")
    subparsers = parser.add_subparsers(dest="command", required=True)

    intake = subparsers.add_parser("intake", help="Resolve an applicant and file a claim")
    intake.add_argument("payload", type=str, help="Path to an intake JSON file, or - for stdin")
    _add_actor(intake)

    candidates = subparsers.add_parser("candidates", help="List duplicate candidates")
    candidates.add_argument("--first-name", type=str, required=True)
    candidates.add_argument("--last-name", type=str, required=True)
    candidates.add_argument("--birthdate", type=_parse_date, required=True, help="YYYY-MM-DD")
    candidates.add_argument("--exclude", type=_parse_uuid, help="Identity id to leave out")

    assess = subparsers.add_parser("assess", help="Assess a prospective claim")
    assess.add_argument("identity_id", type=_parse_uuid)
    assess.add_argument("assistance_type", type=AssistanceType, choices=list(AssistanceType))

    report = subparsers.add_parser("report", help="Summarise recent claim activity")
    report.add_argument("identity_id", type=_parse_uuid)

    claim = subparsers.add_parser("claim", help="Claim lifecycle commands")
    claim_sub = claim.add_subparsers(dest="claim_command", required=True)
    show = claim_sub.add_parser("show", help="Show a claim")
    show.add_argument("claim_id", type=_parse_uuid)
    transition = claim_sub.add_parser("transition", help="Apply a lifecycle action")
    transition.add_argument("claim_id", type=_parse_uuid)
    transition.add_argument("action", type=ClaimAction, choices=list(ClaimAction))
    _add_actor(transition)
    transition.add_argument("--reason", type=str, help="Required for reject")
    proof = claim_sub.add_parser("proof", help="Record proof of disbursement")
    proof.add_argument("claim_id", type=_parse_uuid)
    _add_actor(proof)
    proof.add_argument("--reference", type=str, required=True, help="Proof document reference")
    proof.add_argument("--latitude", type=float)
    proof.add_argument("--longitude", type=float)
    flagged = claim_sub.add_parser("flagged", help="List flagged claims awaiting review")
    flagged.add_argument("--jurisdiction-id", type=_parse_uuid)

    fraud = subparsers.add_parser("fraud-check", help="Fraud check task commands")
    fraud_sub = fraud.add_subparsers(dest="fraud_command", required=True)
    fraud_run = fraud_sub.add_parser("run", help="Run the fraud check for one claim")
    fraud_run.add_argument("claim_id", type=_parse_uuid)
    relay = fraud_sub.add_parser("relay", help="Re-dispatch unfinished fraud checks")
    relay.add_argument("--limit", type=int, default=100)

    pair = subparsers.add_parser("pair", help="Verified-pair whitelist commands")
    pair_sub = pair.add_subparsers(dest="pair_command", required=True)
    verify = pair_sub.add_parser("verify", help="Record an adjudicated pair")
    verify.add_argument("identity_a", type=_parse_uuid)
    verify.add_argument("identity_b", type=_parse_uuid)
    verify.add_argument(
        "--status",
        type=PairStatus,
        choices=[status for status in PairStatus if status.is_active],
        required=True,
    )
    verify.add_argument("--reason", type=str, required=True)
    _add_actor(verify)
    verify.add_argument("--notes", type=str)
    revoke = pair_sub.add_parser("revoke", help="Revoke a pair")
    revoke.add_argument("pair_id", type=_parse_uuid)
    revoke.add_argument("--reason", type=str, required=True)
    _add_actor(revoke)
    lookup = pair_sub.add_parser("lookup", help="Find the active pair for two identities")
    lookup.add_argument("identity_a", type=_parse_uuid)
    lookup.add_argument("identity_b", type=_parse_uuid)

    settings = subparsers.add_parser("settings", help="Fraud-detection thresholds")
    settings_sub = settings.add_subparsers(dest="settings_command", required=True)
    settings_get = settings_sub.add_parser("get", help="Show the effective value")
    settings_get.add_argument("key", type=ThresholdKey, choices=list(ThresholdKey))
    settings_set = settings_sub.add_parser("set", help="Store a new value")
    settings_set.add_argument("key", type=ThresholdKey, choices=list(ThresholdKey))
    settings_set.add_argument("value", type=int)
    _add_actor(settings_set)

    jurisdiction = subparsers.add_parser("jurisdiction", help="Jurisdiction management")
    jurisdiction_sub = jurisdiction.add_subparsers(dest="jurisdiction_command", required=True)
    jurisdiction_create = jurisdiction_sub.add_parser("create", help="Create a jurisdiction")
    jurisdiction_create.add_argument("--name", type=str, required=True)
    jurisdiction_create.add_argument("--code", type=str, required=True)
    jurisdiction_create.add_argument("--budget", type=_parse_decimal, default=Decimal("0.00"))
    _add_actor(jurisdiction_create)

    return parser.parse_args(list(argv))


def _add_actor(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--actor", type=str, help=f"Acting officer; defaults to ${ACTOR_ENV}")


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid UUID: {value}") from exc


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}") from exc


def _parse_decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}") from exc


def _read_payload(source: str) -> IntakePayload:
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    return IntakePayload.model_validate_json(raw)


# Rendering --------------------------------------------------------------------


def _identity_json(identity: Identity) -> dict[str, Any]:
    return {
        "id": str(identity.id),
        "full_name": identity.full_name,
        "birthdate": identity.birthdate.isoformat(),
        "phonetic_code": identity.phonetic_code,
        "home_jurisdiction_id": str(identity.home_jurisdiction_id),
    }


def _claim_json(claim: Claim) -> dict[str, Any]:
    return {
        "id": str(claim.id),
        "identity_id": str(claim.identity_id),
        "jurisdiction_id": str(claim.jurisdiction_id),
        "assistance_type": claim.assistance_type.value,
        "amount": str(claim.amount),
        "status": claim.status.value,
        "is_flagged": claim.is_flagged,
        "flag_reason": claim.flag_reason,
    }


def _match_json(match: CandidateMatch) -> dict[str, Any]:
    return match.snapshot()


def _pair_json(pair: VerifiedPair | None) -> dict[str, Any] | None:
    if pair is None:
        return None
    return {
        "id": str(pair.id),
        "identity_a_id": str(pair.identity_a_id),
        "identity_b_id": str(pair.identity_b_id),
        "status": pair.status.value,
        "reason": pair.reason,
        "verified_by": pair.verified_by,
        "verified_at": pair.verified_at.isoformat(),
    }


def _outcome_json(outcome: FraudCheckOutcome) -> dict[str, Any]:
    return {
        "claim_id": str(outcome.claim_id),
        "result": outcome.result.value,
        "status": outcome.status.value if outcome.status else None,
        "risk_level": outcome.verdict.level.value if outcome.verdict else None,
        "reason": outcome.reason,
    }


def _report_json(report: RiskReport) -> dict[str, Any]:
    return {
        "identity_id": str(report.identity_id),
        "lookback_days": report.lookback_days,
        "claim_count": report.claim_count,
        "jurisdiction_ids": [str(value) for value in report.jurisdiction_ids],
        "assistance_types": [value.value for value in report.assistance_types],
        "total_amount": str(report.total_amount),
        "recent_claims": [claim.snapshot() for claim in report.recent_claims],
    }


def _jurisdiction_json(jurisdiction: Jurisdiction) -> dict[str, Any]:
    return {
        "id": str(jurisdiction.id),
        "name": jurisdiction.name,
        "code": jurisdiction.code,
        "allocated_budget": str(jurisdiction.allocated_budget),
        "used_budget": str(jurisdiction.used_budget),
    }


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


# Commands ---------------------------------------------------------------------


def _run_intake(args: argparse.Namespace) -> None:
    payload = _read_payload(args.payload)
    identity = app.resolve_identity(payload.identity_fields(), actor=args.actor)
    candidates = app.find_duplicate_candidates(
        identity.first_name, identity.last_name, identity.birthdate, identity.id
    )
    claim = None
    if payload.claim is not None:
        claim = app.create_claim(
            identity.id,
            payload.jurisdiction_id,
            payload.claim.assistance_type,
            payload.claim.amount,
            actor=args.actor,
            purpose=payload.claim.purpose,
        )
    _emit(
        {
            "identity": _identity_json(identity),
            "candidates": [_match_json(match) for match in candidates],
            "claim": _claim_json(claim) if claim is not None else None,
        }
    )


def _run_claim(args: argparse.Namespace) -> None:
    if args.claim_command == "show":
        _emit(_claim_json(app.default_registry().lifecycle.get_claim(args.claim_id)))
    elif args.claim_command == "transition":
        claim = app.transition_claim(args.claim_id, args.action, args.actor, args.reason)
        _emit(_claim_json(claim))
    elif args.claim_command == "proof":
        registry = app.default_registry()
        proof = registry.lifecycle.record_disbursement_proof(
            args.claim_id,
            args.actor,
            args.reference,
            latitude=args.latitude,
            longitude=args.longitude,
        )
        _emit({"id": str(proof.id), "claim_id": str(proof.claim_id), "reference": proof.reference})
    else:
        registry = app.default_registry()
        claims = registry.lifecycle.list_flagged_claims(args.jurisdiction_id)
        _emit([_claim_json(claim) for claim in claims])


def _run_pair(args: argparse.Namespace) -> None:
    if args.pair_command == "verify":
        pair = app.verify_pair(
            args.identity_a, args.identity_b, args.status, args.reason, args.actor, notes=args.notes
        )
        _emit(_pair_json(pair))
    elif args.pair_command == "revoke":
        app.revoke_pair(args.pair_id, args.actor, args.reason)
        log.info("Revoked pair %s", args.pair_id)
    else:
        _emit(_pair_json(app.lookup_pair(args.identity_a, args.identity_b)))


def _run_settings(args: argparse.Namespace) -> None:
    thresholds = app.default_registry().thresholds
    if args.settings_command == "set":
        thresholds.set_int(args.key, args.value, actor=args.actor)
    _emit({args.key.value: thresholds.get_int(args.key)})


def _dispatch(args: argparse.Namespace) -> None:
    command = args.command
    if command == "intake":
        _run_intake(args)
    elif command == "candidates":
        matches = app.find_duplicate_candidates(
            args.first_name, args.last_name, args.birthdate, args.exclude
        )
        _emit([_match_json(match) for match in matches])
    elif command == "assess":
        _emit(app.assess_risk(args.identity_id, args.assistance_type).snapshot())
    elif command == "report":
        _emit(_report_json(app.default_registry().scorer.risk_report(args.identity_id)))
    elif command == "claim":
        _run_claim(args)
    elif command == "fraud-check" and args.fraud_command == "run":
        _emit(_outcome_json(app.run_fraud_check(args.claim_id)))
    elif command == "fraud-check":
        _emit([str(claim_id) for claim_id in app.relay_pending_fraud_checks(args.limit)])
    elif command == "pair":
        _run_pair(args)
    elif command == "settings":
        _run_settings(args)
    elif command == "jurisdiction":
        jurisdiction = app.create_jurisdiction(
            args.name, args.code, actor=args.actor, allocated_budget=args.budget
        )
        _emit(_jurisdiction_json(jurisdiction))
    else:
        raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        if "actor" in parsed_args and not parsed_args.actor:
            parsed_args.actor = default_actor()
        _dispatch(parsed_args)
    except ValueError:
        # ValidationFailure and pydantic's ValidationError are both ValueErrors
        log.exception("Invalid input")
        sys.exit(2)
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)  # noqa: TRY400
        sys.exit(2)
    except WelfareGridError:
        log.exception("Operation rejected")
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
