"""Repository classes encapsulating store operations.

Each repository is small and focused on a single entity kind (users,
files, exam weeks/days, quizzes, questions, attempts). They all follow
the same contract:

- `create` assigns the next id, fills server-set fields and returns the
  stored record;
- `get` returns the record or `None`, never raising for unknown ids;
- `update` shallow-merges the given fields over the stored record and
  returns it, or `None` when the id is unknown;
- `delete` returns whether a record was removed.

Parents (exam weeks, quizzes) remove their children in the same critical
section as themselves, so no orphan is ever observable.
"""

import json
import logging
from typing import Callable, Dict, FrozenSet, Generic, List, Optional, TypeVar

from sqlmodel import SQLModel

from . import models
from .store import MemoryStore, Table
from .utils.quiz_codes import generate_quiz_code

logger = logging.getLogger("study_portal.repositories")

T = TypeVar("T", bound=SQLModel)

ALL = "all"


class _Repository(Generic[T]):
    kind: str
    # server-set fields that `update` never overwrites
    protected_fields: FrozenSet[str] = frozenset()

    def __init__(self, store: MemoryStore):
        self.store = store

    @property
    def table(self) -> Table:
        return self.store.table(self.kind)

    def _server_fields(self) -> Dict:
        """Fields the store sets on insert, overriding caller input."""
        return {}

    def create(self, row: T) -> T:
        with self.store.lock:
            return self.table.insert(row, **self._server_fields())

    def get(self, row_id: int) -> Optional[T]:
        with self.store.lock:
            return self.table.get(row_id)

    def list_all(self) -> List[T]:
        with self.store.lock:
            return self.table.all()

    def delete(self, row_id: int) -> bool:
        with self.store.lock:
            return self.table.remove(row_id)


class _MutableRepository(_Repository[T]):

    def update(self, row_id: int, changes: Dict) -> Optional[T]:
        """Merge `changes` over the stored record.

        `id`, the repository's `protected_fields` and unknown keys are ignored.
        """
        with self.store.lock:
            current = self.table.get(row_id)
            if current is None:
                return None
            fields = type(current).model_fields
            skip = self.protected_fields | {"id"}
            patch = {k: v for k, v in changes.items() if k in fields and k not in skip}
            if not patch:
                return current
            return self.table.replace(row_id, current.model_copy(update=patch))


class UserRepository(_MutableRepository[models.User]):
    """CRUD operations for `User` records."""
    kind = "users"

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        with self.store.lock:
            found = self.table.where(lambda u: u.username == username)
        return found[0] if found else None


class FileRepository(_MutableRepository[models.StudyFile]):
    """CRUD operations and filtering for uploaded file metadata."""
    kind = "files"
    protected_fields = frozenset({"upload_date"})

    def _server_fields(self) -> Dict:
        return {"upload_date": models.utcnow()}

    def list_by_filters(self, grade: str = ALL, subject: str = ALL, semester: str = ALL) -> List[models.StudyFile]:
        """Return files matching every filter that is not the `all` sentinel.

        Matching is exact equality on each field; results keep insertion
        order.
        """
        def matches(f: models.StudyFile) -> bool:
            return (
                (grade == ALL or f.grade == grade)
                and (subject == ALL or f.subject == subject)
                and (semester == ALL or f.semester == semester)
            )

        with self.store.lock:
            return self.table.where(matches)


class ExamWeekRepository(_MutableRepository[models.ExamWeek]):
    """CRUD operations for exam weeks; deleting a week removes its days."""
    kind = "exam_weeks"

    def delete(self, row_id: int) -> bool:
        with self.store.lock:
            if row_id not in self.table:
                return False
            removed_days = self.store.table("exam_days").remove_where(lambda d: d.week_id == row_id)
            self.table.remove(row_id)
        logger.info("exam_week_deleted %s", json.dumps({"week_id": row_id, "days_removed": removed_days}))
        return True


class ExamDayRepository(_MutableRepository[models.ExamDay]):
    """CRUD operations for the days inside an exam week."""
    kind = "exam_days"

    def list_by_week(self, week_id: int) -> List[models.ExamDay]:
        """Return the week's days in calendar order (sunday first)."""
        with self.store.lock:
            days = self.table.where(lambda d: d.week_id == week_id)
        days.sort(key=lambda d: (models.weekday_rank(d.day), d.id))
        return days


class QuizRepository(_MutableRepository[models.Quiz]):
    """CRUD operations for quizzes, including code assignment and cascade delete."""
    kind = "quizzes"
    protected_fields = frozenset({"quiz_code", "created_at"})

    def _server_fields(self) -> Dict:
        return {"created_at": models.utcnow()}

    def create(self, row: models.Quiz, code_factory: Callable[[], str] = generate_quiz_code, max_attempts: int = 20) -> models.Quiz:
        """Store a quiz under a freshly generated code.

        Codes are unique among existing quizzes: a colliding code is
        regenerated up to `max_attempts` times before giving up with
        `RuntimeError`. Any caller-supplied `quiz_code` is replaced.
        """
        with self.store.lock:
            taken = {q.quiz_code for q in self.table.all()}
            for attempt in range(1, max_attempts + 1):
                code = code_factory()
                if code not in taken:
                    return self.table.insert(row, quiz_code=code, **self._server_fields())
                logger.warning("quiz_code_collision %s", json.dumps({"code": code, "attempt": attempt}))
        raise RuntimeError(f"could not generate a unique quiz code after {max_attempts} attempts")

    def get_by_code(self, code: str) -> Optional[models.Quiz]:
        with self.store.lock:
            found = self.table.where(lambda q: q.quiz_code == code)
        return found[0] if found else None

    def list_public(self) -> List[models.Quiz]:
        with self.store.lock:
            return self.table.where(lambda q: q.is_public)

    def delete(self, row_id: int) -> bool:
        with self.store.lock:
            if row_id not in self.table:
                return False
            removed_questions = self.store.table("quiz_questions").remove_where(lambda q: q.quiz_id == row_id)
            removed_attempts = self.store.table("quiz_attempts").remove_where(lambda a: a.quiz_id == row_id)
            self.table.remove(row_id)
        logger.info(
            "quiz_deleted %s",
            json.dumps({"quiz_id": row_id, "questions_removed": removed_questions, "attempts_removed": removed_attempts}),
        )
        return True


class QuizQuestionRepository(_MutableRepository[models.QuizQuestion]):
    """CRUD operations for quiz questions."""
    kind = "quiz_questions"

    def list_by_quiz(self, quiz_id: int) -> List[models.QuizQuestion]:
        """Return the quiz's questions sorted ascending by `order`.

        Equal `order` values keep insertion order.
        """
        with self.store.lock:
            questions = self.table.where(lambda q: q.quiz_id == quiz_id)
        questions.sort(key=lambda q: q.order)
        return questions


class QuizAttemptRepository(_Repository[models.QuizAttempt]):
    """Create and query quiz attempts. Attempts are never updated."""
    kind = "quiz_attempts"

    def _server_fields(self) -> Dict:
        return {"submitted_at": models.utcnow()}

    def list_by_quiz(self, quiz_id: int) -> List[models.QuizAttempt]:
        """Return the quiz's attempts, most recent first."""
        with self.store.lock:
            attempts = self.table.where(lambda a: a.quiz_id == quiz_id)
        attempts.sort(key=lambda a: (a.submitted_at, a.id), reverse=True)
        return attempts
