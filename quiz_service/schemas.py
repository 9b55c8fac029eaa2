from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Fields default to "" so that missing values reach the explicit
# per-field check in engine.validate_registration.
class RegisterIn(BaseModel):
    name: str = ""
    class_name: str = ""
    school: str = ""
    phone: str = ""

class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    class_name: str
    school: str
    phone: str
    created_at: datetime

class RegisterOut(BaseModel):
    participant: ParticipantOut
    has_active_attempt: bool
    attempt_id: str | None = None

class StartQuizIn(BaseModel):
    participant_id: str = ""
    attempt_id: str | None = None

# Never carries is_correct
class OptionOut(BaseModel):
    id: str
    question_id: str
    text: str

class QuizQuestionOut(BaseModel):
    id: str
    text: str
    options: list[OptionOut]

class StartQuizOut(BaseModel):
    attempt_id: str
    time_remaining: int
    questions: list[QuizQuestionOut]
    answers: dict[str, str] = Field(default_factory=dict, description="question_id -> selected_option_id")

class SaveAnswerIn(BaseModel):
    attempt_id: str = ""
    question_id: str = ""
    selected_option_id: str | None = None

class SaveAnswerOut(BaseModel):
    success: bool = True

class LogViolationIn(BaseModel):
    attempt_id: str = ""
    violation_type: str = ""

class SubmitQuizIn(BaseModel):
    attempt_id: str = ""
    final_answers: dict[str, str | None] = Field(default_factory=dict)

class SubmitQuizOut(BaseModel):
    score: int
    total_questions: int
    submitted_at: datetime

class LogViolationOut(BaseModel):
    success: bool = True
    recorded: bool
    violation_count: int
    should_auto_submit: bool
    submission: SubmitQuizOut | None = None

class StatusOut(BaseModel):
    time_remaining: int
    is_submitted: bool
    score: int | None = None
