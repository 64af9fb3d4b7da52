"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and reject malformed
payloads before they reach services or the store.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .models import Grade, QuestionType, Semester, Subject, Weekday, TRUE_FALSE_ANSWERS


def check_question_shape(question_type: QuestionType, options: List[str], correct_answer: str) -> List[str]:
    """Validate a question's options/answer pair and return the options to store.

    True/false questions carry no options and answer with the literal
    strings "true" or "false". Multiple-choice questions need at least
    two options, one of which is the correct answer. Raises ValueError.
    """
    if question_type == QuestionType.TRUE_FALSE:
        if correct_answer not in TRUE_FALSE_ANSWERS:
            raise ValueError('true-false questions must have correct_answer "true" or "false"')
        return []
    if len(options) < 2:
        raise ValueError("multiple-choice questions need at least two options")
    if correct_answer not in options:
        raise ValueError("correct_answer must be one of the options")
    return list(options)


class LoginIn(BaseModel):
    """Payload for the admin login endpoint."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserOut(BaseModel):
    id: int
    username: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class FileMetadataIn(BaseModel):
    """Descriptive fields sent alongside an uploaded file."""
    title: str = Field(min_length=1)
    subject: Subject
    grade: Grade
    semester: Semester


class FileUpdateIn(BaseModel):
    """Partial metadata update; omitted fields keep their stored value."""
    title: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[Subject] = None
    grade: Optional[Grade] = None
    semester: Optional[Semester] = None


class ExamDayIn(BaseModel):
    """One day of an exam week as edited in the schedule form.

    Inactive days are skipped on create and deleted (when they carry an
    `id`) on update.
    """
    id: Optional[int] = None
    day: Weekday
    date: str = ""
    subject: str = ""
    lessons: str = ""
    active: bool = True


class ExamWeekIn(BaseModel):
    name: str = Field(min_length=1)
    days: List[ExamDayIn] = Field(default_factory=list)


class ExamWeekUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    days: Optional[List[ExamDayIn]] = None


class QuizIn(BaseModel):
    """Request format for creating a quiz. The code is always server-generated."""
    title: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    creator_name: str = Field(min_length=1)
    is_public: bool = True


class QuizQuestionIn(BaseModel):
    """Request format for adding a question to a quiz.

    When `order` is omitted the question is appended after the existing
    ones.
    """
    question_text: str = Field(min_length=1)
    question_type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    order: Optional[int] = None

    @model_validator(mode="after")
    def _check_shape(self):
        self.options = check_question_shape(self.question_type, self.options, self.correct_answer)
        return self


class QuizQuestionUpdateIn(BaseModel):
    """Partial question update; the merged question is re-validated by the service."""
    question_text: Optional[str] = Field(default=None, min_length=1)
    question_type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    order: Optional[int] = None


class AttemptAnswerIn(BaseModel):
    """Single submitted answer used when scoring an attempt."""
    question_id: int
    answer: str


class AttemptIn(BaseModel):
    """Request model for submitting a quiz attempt."""
    taker_name: str = Field(min_length=1)
    answers: List[AttemptAnswerIn] = Field(default_factory=list)


class QuizDeleteIn(BaseModel):
    """Body of a quiz delete request; non-admins must name the quiz creator."""
    creator_name: Optional[str] = None
