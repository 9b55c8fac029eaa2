from datetime import timedelta

import pytest

from quiz_service import crud
from quiz_service.answers import save_answer
from quiz_service.engine import start_or_resume
from quiz_service.errors import NotFound
from quiz_service.models import AnswerOption
from quiz_service.scoring import submit

from .conftest import DURATION, T0


@pytest.fixture
def attempt_id(db, bank, participant):
    return start_or_resume(db, participant.id, duration_seconds=DURATION, now=T0).attempt_id


def test_score_counts_correct_answers_only(db, bank, attempt_id):
    save_answer(db, attempt_id, bank[0]["id"], bank[0]["correct"], now=T0 + timedelta(seconds=1))
    save_answer(db, attempt_id, bank[1]["id"], bank[1]["wrong"], now=T0 + timedelta(seconds=2))
    # bank[2] left unanswered

    r = submit(db, attempt_id, now=T0 + timedelta(seconds=3))
    assert r.score == 1
    assert r.total_questions == 3
    assert r.submitted_at == T0 + timedelta(seconds=3)


def test_all_correct(db, bank, attempt_id):
    for i, q in enumerate(bank):
        save_answer(db, attempt_id, q["id"], q["correct"], now=T0 + timedelta(seconds=i + 1))
    assert submit(db, attempt_id, now=T0 + timedelta(minutes=5)).score == 3


def test_nothing_answered(db, bank, attempt_id):
    r = submit(db, attempt_id, now=T0 + timedelta(seconds=1))
    assert (r.score, r.total_questions) == (0, 3)


def test_deselected_answer_scores_zero(db, bank, attempt_id):
    q = bank[0]
    save_answer(db, attempt_id, q["id"], q["correct"], now=T0 + timedelta(seconds=1))
    save_answer(db, attempt_id, q["id"], None, now=T0 + timedelta(seconds=2))
    assert submit(db, attempt_id, now=T0 + timedelta(seconds=3)).score == 0


def test_resubmit_is_idempotent_and_not_rescored(db, bank, attempt_id):
    save_answer(db, attempt_id, bank[0]["id"], bank[0]["correct"], now=T0 + timedelta(seconds=1))
    first = submit(db, attempt_id, now=T0 + timedelta(seconds=2))

    # flip ground truth; a rescoring pass would now see 0
    db.query(AnswerOption).filter(AnswerOption.id == bank[0]["correct"]).update({"is_correct": False})
    db.commit()

    second = submit(db, attempt_id, {bank[1]["id"]: bank[1]["correct"]}, now=T0 + timedelta(seconds=30))
    assert second == first
    assert second.score == 1
    assert bank[1]["id"] not in crud.answer_map(db, attempt_id)


def test_final_answers_are_flushed(db, bank, attempt_id):
    save_answer(db, attempt_id, bank[0]["id"], bank[0]["wrong"], now=T0 + timedelta(seconds=1))
    final = {q["id"]: q["correct"] for q in bank}

    r = submit(db, attempt_id, final, now=T0 + timedelta(seconds=5))
    assert r.score == 3
    assert crud.answer_map(db, attempt_id) == final


def test_final_answers_flushed_within_grace(db, bank, attempt_id):
    deadline = T0 + timedelta(seconds=DURATION)
    final = {bank[0]["id"]: bank[0]["correct"]}

    r = submit(db, attempt_id, final, now=deadline + timedelta(seconds=5), grace_seconds=15)
    assert r.score == 1


def test_final_answers_dropped_after_deadline(db, bank, attempt_id):
    save_answer(db, attempt_id, bank[0]["id"], bank[0]["correct"], now=T0 + timedelta(seconds=1))
    late = {q["id"]: q["correct"] for q in bank[1:]}

    r = submit(db, attempt_id, late, now=T0 + timedelta(days=3), grace_seconds=15)
    assert r.score == 1
    assert r.total_questions == 3
    assert crud.answer_map(db, attempt_id) == {bank[0]["id"]: bank[0]["correct"]}


def test_final_answers_dropped_at_deadline_without_grace(db, bank, attempt_id):
    deadline = T0 + timedelta(seconds=DURATION)
    r = submit(db, attempt_id, {bank[0]["id"]: bank[0]["correct"]}, now=deadline)
    assert r.score == 0
    assert crud.get_attempt(db, attempt_id).submitted_at is not None


def test_invalid_final_answers_are_skipped(db, bank, attempt_id):
    final = {
        bank[0]["id"]: bank[0]["correct"],
        "unknown-question": "whatever",
        bank[1]["id"]: bank[2]["correct"],
    }
    r = submit(db, attempt_id, final, now=T0 + timedelta(seconds=5))
    assert r.score == 1
    assert crud.answer_map(db, attempt_id) == {bank[0]["id"]: bank[0]["correct"]}


def test_correct_option_of_other_question_does_not_count(db, bank, attempt_id):
    # bypass the save-time check to prove scoring checks ownership too
    crud.upsert_answer(db, attempt_id, bank[0]["id"], bank[1]["correct"], T0 + timedelta(seconds=1))
    db.commit()
    assert submit(db, attempt_id, now=T0 + timedelta(seconds=2)).score == 0


def test_terminal_transition_happens_once(db, bank, attempt_id):
    assert crud.finalize_attempt(db, attempt_id, T0 + timedelta(seconds=1)) is True
    db.commit()
    assert crud.finalize_attempt(db, attempt_id, T0 + timedelta(seconds=2)) is False
    db.rollback()

    attempt = crud.get_attempt(db, attempt_id)
    assert attempt.score == 0
    assert attempt.submitted_at is not None


def test_score_and_timestamp_set_together(db, bank, attempt_id):
    attempt = crud.get_attempt(db, attempt_id)
    assert attempt.score is None and attempt.submitted_at is None

    submit(db, attempt_id, now=T0 + timedelta(seconds=1))
    attempt = crud.get_attempt(db, attempt_id)
    assert attempt.score is not None and attempt.submitted_at is not None


def test_submit_unknown_attempt(db):
    with pytest.raises(NotFound):
        submit(db, "missing", now=T0)
