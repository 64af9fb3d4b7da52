"""SQLModel data models.

This module defines the portal's records as SQLModel data models. They
are not mapped to tables: the entity store keeps them in memory, keyed by
their numeric `id`. Every model leaves `id` empty until the store assigns
one on insert.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subject(str, Enum):
    ARABIC = "arabic"
    ENGLISH = "english"
    MATH = "math"
    CHEMISTRY = "chemistry"
    PHYSICS = "physics"
    BIOLOGY = "biology"
    ISLAMIC = "islamic"
    CONSTITUTION = "constitution"


class Grade(str, Enum):
    TWELFTH = "12"


class Semester(str, Enum):
    FIRST = "first"
    SECOND = "second"


class Weekday(str, Enum):
    """School days on which exams can be scheduled, in calendar order."""
    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"


_WEEKDAYS = list(Weekday)


def weekday_rank(day) -> int:
    """Position of `day` (member or raw value) in the school week, sunday = 0."""
    return _WEEKDAYS.index(Weekday(day))


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"


TRUE_FALSE_ANSWERS = ("true", "false")


class User(SQLModel):
    """An administrator account.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = None
    username: str
    password_hash: str


class StudyFile(SQLModel):
    """Metadata for an uploaded study file.

    `file_name` is the generated name of the stored binary and
    `file_path` the URL it can be downloaded from. `upload_date` is set
    by the store on insert.
    """
    id: Optional[int] = None
    title: str
    subject: Subject
    grade: Grade
    semester: Semester
    file_path: str
    file_name: str
    file_size: int
    file_type: str
    upload_date: Optional[datetime] = None


class ExamWeek(SQLModel):
    """A named week of the exam calendar; owns its `ExamDay` rows."""
    id: Optional[int] = None
    name: str


class ExamDay(SQLModel):
    """A single exam entry inside an `ExamWeek`.

    `date` is free-form text as typed by the administrator.
    """
    id: Optional[int] = None
    week_id: int
    day: Weekday
    date: str
    subject: str
    lessons: str


class Quiz(SQLModel):
    """A user-created quiz, addressed by takers through `quiz_code`."""
    id: Optional[int] = None
    title: str
    subject: str
    creator_name: str
    quiz_code: str = ""
    created_at: Optional[datetime] = None
    is_public: bool = True


class QuizQuestion(SQLModel):
    """A question belonging to a `Quiz`; `order` drives display order."""
    id: Optional[int] = None
    quiz_id: int
    question_text: str
    question_type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    order: int = 0


class AttemptAnswer(SQLModel):
    question_id: int
    answer: str


class QuizAttempt(SQLModel):
    """A submitted answer set with its computed score. Immutable once stored."""
    id: Optional[int] = None
    quiz_id: int
    taker_name: str
    score: int = 0
    total_questions: int = 0
    answers: List[AttemptAnswer] = Field(default_factory=list)
    submitted_at: Optional[datetime] = None
