import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from . import crud
from .engine import ensure_mutable, get_attempt_or_404
from .errors import InvalidInput
from .timing import utcnow

logger = logging.getLogger(__name__)

VIOLATION_KINDS = ("tab_switch", "fullscreen_exit", "page_blur")
DEFAULT_THRESHOLD = 10


@dataclass
class ViolationResult:
    recorded: bool
    violation_count: int
    should_auto_submit: bool


def log_violation(
    db: Session,
    attempt_id: str,
    kind: str,
    *,
    threshold: int = DEFAULT_THRESHOLD,
    now: datetime | None = None,
) -> ViolationResult:
    """
    Appends one violation event and bumps the counter atomically.

    Logging against a submitted attempt is a successful no-op. The returned
    should_auto_submit flag is advisory; submitting is up to the caller.
    """
    now = now or utcnow()
    if kind not in VIOLATION_KINDS:
        raise InvalidInput(
            "Unknown violation type",
            {"violation_type": f"Expected one of {', '.join(VIOLATION_KINDS)}"},
        )

    attempt = get_attempt_or_404(db, attempt_id)
    if attempt.submitted_at is not None:
        return ViolationResult(recorded=False, violation_count=attempt.violation_count, should_auto_submit=False)
    ensure_mutable(db, attempt, now)

    count = crud.append_violation(db, attempt_id, kind, now)
    if count is None:
        # submitted between our read and the increment
        attempt = crud.get_attempt(db, attempt_id)
        return ViolationResult(recorded=False, violation_count=attempt.violation_count, should_auto_submit=False)

    should_auto_submit = count >= threshold
    if count == threshold:
        logger.info("Attempt %s reached %d violations", attempt_id, count)
    return ViolationResult(recorded=True, violation_count=count, should_auto_submit=should_auto_submit)
