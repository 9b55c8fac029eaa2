"""
Attempt lifecycle: registration, start/resume with frozen ordering, the
submitted/expired guard shared by every mutating call, and status. An open
attempt seen with no time left is submitted as soon as any of these notice.

Every operation rehydrates what it needs from the store and finishes; there
is no in-process session state. Operations accept an optional `now` so the
clock is read exactly once per call.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from . import crud
from .errors import AlreadySubmitted, Expired, InvalidInput, NotFound, StoreFailure
from .models import Participant, QuizAttempt
from .shuffle import option_seed, question_seed, seeded_shuffle
from .timing import remaining_seconds, utcnow

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
PHONE_LENGTHS = (10, 12)


@dataclass
class RegisterResult:
    participant: Participant
    has_active_attempt: bool
    attempt_id: str | None = None


@dataclass
class QuizView:
    attempt_id: str
    time_remaining: int
    questions: list[dict]
    answers: dict[str, str] = field(default_factory=dict)


@dataclass
class AttemptStatus:
    time_remaining: int
    is_submitted: bool
    score: int | None = None


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def validate_registration(name, class_name, school, phone) -> dict:
    """Per-field input contract. Returns the cleaned payload or raises InvalidInput."""
    fields = {"name": name, "class_name": class_name, "school": school, "phone": phone}

    missing = [k for k, v in fields.items() if not isinstance(v, str) or not v.strip()]
    if missing:
        raise InvalidInput("All fields are required", {k: "This field is required" for k in missing})

    cleaned = {k: v.strip() for k, v in fields.items()}
    cleaned["phone"] = normalize_phone(cleaned["phone"])
    if len(cleaned["phone"]) not in PHONE_LENGTHS:
        raise InvalidInput("Invalid phone number format", {"phone": "Expected 10 or 12 digits"})
    return cleaned


def register(db: Session, name, class_name, school, phone, now: datetime | None = None) -> RegisterResult:
    now = now or utcnow()
    payload = validate_registration(name, class_name, school, phone)

    participant = crud.get_participant_by_phone(db, payload["phone"])
    if not participant:
        try:
            participant = crud.create_participant(db, payload)
            logger.info("Registered participant %s", participant.id)
        except StoreFailure:
            # lost a race on the unique phone; the other writer's row wins
            participant = crud.get_participant_by_phone(db, payload["phone"])
            if not participant:
                raise

    active = crud.find_active_attempt(db, participant.id)
    if active and close_if_expired(db, active, now) == 0:
        active = None
    return RegisterResult(
        participant=participant,
        has_active_attempt=active is not None,
        attempt_id=active.id if active else None,
    )


def _build_orders(db: Session, participant_id: str) -> tuple[list[str], dict[str, list[str]]]:
    question_ids = crud.list_question_ids(db)
    if not question_ids:
        raise NotFound("No questions available")

    question_order = seeded_shuffle(question_ids, question_seed(participant_id))
    option_orders: dict[str, list[str]] = {}
    for qid in question_order:
        option_ids = crud.list_option_ids(db, qid)
        if option_ids:
            option_orders[qid] = seeded_shuffle(option_ids, option_seed(participant_id, qid))
    return question_order, option_orders


def _quiz_questions(db: Session, attempt: QuizAttempt) -> list[dict]:
    question_order: list[str] = attempt.question_order or []
    option_orders: dict[str, list[str]] = attempt.option_orders or {}

    questions = crud.get_questions(db, question_order)
    all_option_ids = [oid for qid in question_order for oid in option_orders.get(qid, [])]
    options = crud.get_options_content(db, all_option_ids)

    out = []
    for qid in question_order:
        q = questions.get(qid)
        if not q:
            continue
        out.append({
            "id": q.id,
            "text": q.text,
            "options": [options[oid] for oid in option_orders.get(qid, []) if oid in options],
        })
    return out


def start_or_resume(
    db: Session,
    participant_id: str,
    attempt_id: str | None = None,
    *,
    duration_seconds: int,
    now: datetime | None = None,
) -> QuizView:
    now = now or utcnow()
    if not participant_id:
        raise InvalidInput("Participant ID required", {"participant_id": "This field is required"})
    if not crud.get_participant(db, participant_id):
        raise NotFound("Participant not found")

    attempt = None
    if attempt_id:
        attempt = crud.find_active_attempt(db, participant_id, attempt_id)
    if not attempt:
        # covers a client that lost its cached attempt id
        attempt = crud.find_active_attempt(db, participant_id)

    if attempt:
        if close_if_expired(db, attempt, now) == 0:
            raise Expired()
        logger.info("Resuming attempt %s", attempt.id)
    elif crud.has_submitted_attempt(db, participant_id):
        # one timed run per participant
        raise AlreadySubmitted()
    else:
        question_order, option_orders = _build_orders(db, participant_id)
        attempt = crud.create_attempt(
            db,
            participant_id=participant_id,
            question_order=question_order,
            option_orders=option_orders,
            started_at=now,
            duration_seconds=duration_seconds,
        )
        logger.info("Opened attempt %s with %d questions", attempt.id, len(question_order))

    remaining = remaining_seconds(attempt.started_at, attempt.duration_seconds, now)

    return QuizView(
        attempt_id=attempt.id,
        time_remaining=remaining,
        questions=_quiz_questions(db, attempt),
        answers=crud.answer_map(db, attempt.id),
    )


def get_attempt_or_404(db: Session, attempt_id: str) -> QuizAttempt:
    if not attempt_id:
        raise InvalidInput("Attempt ID required", {"attempt_id": "This field is required"})
    attempt = crud.get_attempt(db, attempt_id)
    if not attempt:
        raise NotFound("Attempt not found")
    return attempt


def close_if_expired(db: Session, attempt: QuizAttempt, now: datetime) -> int:
    """
    Returns the remaining seconds. An open attempt found with no time left is
    submitted on the spot, scoring whatever answers were saved.
    """
    remaining = remaining_seconds(attempt.started_at, attempt.duration_seconds, now)
    if remaining == 0 and attempt.submitted_at is None:
        if crud.finalize_attempt(db, attempt.id, now):
            crud.commit(db, "submit expired attempt")
            logger.info("Attempt %s ran out of time and was submitted", attempt.id)
        else:
            db.rollback()
        db.refresh(attempt)
    return remaining


def ensure_mutable(db: Session, attempt: QuizAttempt, now: datetime) -> int:
    """
    Guard for every mutating call. Re-checked on each call, never cached.
    Past the deadline the answer is always Expired, even once submitted.
    Returns the remaining seconds.
    """
    remaining = close_if_expired(db, attempt, now)
    if remaining == 0:
        logger.warning("Rejected change to expired attempt %s", attempt.id)
        raise Expired("Quiz time expired")
    if attempt.submitted_at is not None:
        logger.warning("Rejected change to submitted attempt %s", attempt.id)
        raise AlreadySubmitted()
    return remaining


def status(db: Session, attempt_id: str, now: datetime | None = None) -> AttemptStatus:
    now = now or utcnow()
    attempt = get_attempt_or_404(db, attempt_id)
    remaining = close_if_expired(db, attempt, now)
    if attempt.submitted_at is not None:
        return AttemptStatus(time_remaining=0, is_submitted=True, score=attempt.score)
    return AttemptStatus(time_remaining=remaining, is_submitted=False)
