import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.database import db_dependency
from .answers import save_answer
from .config import Settings
from .engine import register, start_or_resume, status
from .schemas import (
    RegisterIn, RegisterOut, ParticipantOut,
    StartQuizIn, StartQuizOut,
    SaveAnswerIn, SaveAnswerOut,
    LogViolationIn, LogViolationOut,
    SubmitQuizIn, SubmitQuizOut, StatusOut,
)
from .scoring import submit
from .violations import log_violation

logger = logging.getLogger(__name__)


def build_router(SessionLocal, settings: Settings) -> APIRouter:
    # one router per app, so each app keeps its own session factory
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    @router.post("/register", response_model=RegisterOut)
    def register_participant(payload: RegisterIn, db: Session = Depends(get_db)):
        r = register(db, payload.name, payload.class_name, payload.school, payload.phone)
        return RegisterOut(
            participant=ParticipantOut.model_validate(r.participant),
            has_active_attempt=r.has_active_attempt,
            attempt_id=r.attempt_id,
        )

    @router.post("/start", response_model=StartQuizOut)
    def start(payload: StartQuizIn, db: Session = Depends(get_db)):
        view = start_or_resume(
            db,
            payload.participant_id,
            payload.attempt_id,
            duration_seconds=settings.quiz_duration_seconds,
        )
        return StartQuizOut(
            attempt_id=view.attempt_id,
            time_remaining=view.time_remaining,
            questions=view.questions,
            answers=view.answers,
        )

    @router.post("/answer", response_model=SaveAnswerOut)
    def answer(payload: SaveAnswerIn, db: Session = Depends(get_db)):
        save_answer(db, payload.attempt_id, payload.question_id, payload.selected_option_id)
        return SaveAnswerOut()

    @router.post("/violations", response_model=LogViolationOut)
    def violation(payload: LogViolationIn, db: Session = Depends(get_db)):
        r = log_violation(db, payload.attempt_id, payload.violation_type, threshold=settings.violation_threshold)
        out = LogViolationOut(
            recorded=r.recorded,
            violation_count=r.violation_count,
            should_auto_submit=r.should_auto_submit,
        )
        if r.should_auto_submit and settings.enforce_violation_submit:
            logger.info("Auto-submitting attempt %s after %d violations", payload.attempt_id, r.violation_count)
            s = submit(db, payload.attempt_id)
            out.submission = SubmitQuizOut(score=s.score, total_questions=s.total_questions, submitted_at=s.submitted_at)
        return out

    @router.post("/submit", response_model=SubmitQuizOut)
    def submit_quiz(payload: SubmitQuizIn, db: Session = Depends(get_db)):
        s = submit(
            db,
            payload.attempt_id,
            payload.final_answers,
            grace_seconds=settings.final_answer_grace_seconds,
        )
        return SubmitQuizOut(score=s.score, total_questions=s.total_questions, submitted_at=s.submitted_at)

    @router.get("/status", response_model=StatusOut)
    def get_status(attempt_id: str = Query(default=""), db: Session = Depends(get_db)):
        st = status(db, attempt_id)
        return StatusOut(time_remaining=st.time_remaining, is_submitted=st.is_submitted, score=st.score)

    return router
