"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the helpers in `utils`. Services are intentionally thin: they apply
domain rules, run multi-step workflows inside the store's lock and
return store records. Unknown ids come back as `None`/`False`; rule
violations raise `ValueError` or `PermissionDenied`.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import jwt
from passlib.context import CryptContext

from . import models, repositories
from .config import DEFAULT_ADMIN_PASSWORD, settings
from .schemas import (
    AttemptIn,
    ExamWeekIn,
    ExamWeekUpdateIn,
    FileMetadataIn,
    QuizIn,
    QuizQuestionIn,
    check_question_shape,
)
from .store import MemoryStore
from .utils import uploads
from .utils.scoring import score_attempt

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("study_portal.services")

WeekWithDays = Tuple[models.ExamWeek, List[models.ExamDay]]
QuizWithQuestions = Tuple[models.Quiz, List[models.QuizQuestion]]


class PermissionDenied(Exception):
    """Raised when the caller may not act on an existing record."""


class AuthService:
    """Admin accounts: registration, credential checks and access tokens."""
    def __init__(self, store: MemoryStore):
        self.store = store
        self.user_repo = repositories.UserRepository(store)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password."""
        hashed = PWD_CTX.hash(password)
        return self.user_repo.create(models.User(username=username, password_hash=hashed))

    def ensure_admin(self, username: str, password: str) -> models.User:
        """Seed the admin account unless a user with that name exists."""
        with self.store.lock:
            existing = self.user_repo.get_by_username(username)
            if existing:
                return existing
            user = self.register(username, password)
        if password == DEFAULT_ADMIN_PASSWORD:
            logger.warning("admin account %r uses the default password; set ADMIN_PASSWORD", username)
        return user

    def verify(self, username: str, password: str) -> Optional[models.User]:
        """Return the user when `password` matches its stored hash, else `None`."""
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return user

    def issue_token(self, user: models.User) -> str:
        """Return a signed JWT carrying `user_id` and `username`."""
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {'user_id': user.id, 'username': user.username, 'exp': expire}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class FileService:
    """Upload, edit and remove study files (metadata + stored binary)."""
    def __init__(self, store: MemoryStore):
        self.store = store
        self.file_repo = repositories.FileRepository(store)

    def upload(self, payload: bytes, original_name: str, content_type: str, meta: FileMetadataIn) -> models.StudyFile:
        """Store the binary on disk and record its metadata.

        Size, media type and metadata are expected to be validated by the
        caller.
        """
        stored_name = uploads.save_upload(payload, original_name)
        row = models.StudyFile(
            title=meta.title,
            subject=meta.subject,
            grade=meta.grade,
            semester=meta.semester,
            file_path=uploads.download_url(stored_name),
            file_name=stored_name,
            file_size=len(payload),
            file_type=content_type,
        )
        return self.file_repo.create(row)

    def update_metadata(self, file_id: int, changes: Dict) -> Optional[models.StudyFile]:
        return self.file_repo.update(file_id, changes)

    def delete(self, file_id: int) -> bool:
        """Remove the metadata record, then its stored binary if still present."""
        with self.store.lock:
            existing = self.file_repo.get(file_id)
            if existing is None:
                return False
            self.file_repo.delete(file_id)
        if not uploads.remove_upload(existing.file_name):
            logger.warning("stored binary missing for file %s (%s)", file_id, existing.file_name)
        return True


class ScheduleService:
    """Exam weeks together with their days."""
    def __init__(self, store: MemoryStore):
        self.store = store
        self.week_repo = repositories.ExamWeekRepository(store)
        self.day_repo = repositories.ExamDayRepository(store)

    def get_week(self, week_id: int) -> Optional[WeekWithDays]:
        with self.store.lock:
            week = self.week_repo.get(week_id)
            if week is None:
                return None
            return week, self.day_repo.list_by_week(week_id)

    def create_week(self, payload: ExamWeekIn) -> WeekWithDays:
        """Create a week and one day per active entry of `payload.days`."""
        with self.store.lock:
            week = self.week_repo.create(models.ExamWeek(name=payload.name))
            for d in payload.days:
                if not d.active:
                    continue
                self.day_repo.create(models.ExamDay(
                    week_id=week.id, day=d.day, date=d.date, subject=d.subject, lessons=d.lessons,
                ))
            return week, self.day_repo.list_by_week(week.id)

    def update_week(self, week_id: int, payload: ExamWeekUpdateIn) -> Optional[WeekWithDays]:
        """Rename a week and upsert its days.

        For each submitted day: inactive days that carry the id of one of
        this week's days are deleted; active days with such an id are
        updated; any other active day is created. Days belonging to other
        weeks are never touched.
        """
        with self.store.lock:
            week = self.week_repo.get(week_id)
            if week is None:
                return None
            if payload.name is not None:
                week = self.week_repo.update(week_id, {'name': payload.name})
            if payload.days is not None:
                existing = {d.id for d in self.day_repo.list_by_week(week_id)}
                for d in payload.days:
                    if not d.active:
                        if d.id in existing:
                            self.day_repo.delete(d.id)
                        continue
                    fields = {'week_id': week_id, 'day': d.day, 'date': d.date, 'subject': d.subject, 'lessons': d.lessons}
                    if d.id in existing:
                        self.day_repo.update(d.id, fields)
                    else:
                        self.day_repo.create(models.ExamDay(**fields))
            return week, self.day_repo.list_by_week(week_id)

    def delete_week(self, week_id: int) -> bool:
        return self.week_repo.delete(week_id)


class QuizService:
    """Quiz authoring, taking and scoring."""
    def __init__(self, store: MemoryStore):
        self.store = store
        self.quiz_repo = repositories.QuizRepository(store)
        self.question_repo = repositories.QuizQuestionRepository(store)
        self.attempt_repo = repositories.QuizAttemptRepository(store)

    def list_quizzes(self, public_only: bool = False) -> List[models.Quiz]:
        if public_only:
            return self.quiz_repo.list_public()
        return self.quiz_repo.list_all()

    def create_quiz(self, payload: QuizIn) -> models.Quiz:
        """Create a quiz under a new unique code."""
        quiz = self.quiz_repo.create(
            models.Quiz(**payload.model_dump()),
            max_attempts=settings.QUIZ_CODE_MAX_ATTEMPTS,
        )
        logger.info("quiz_created %s", json.dumps({'quiz_id': quiz.id, 'quiz_code': quiz.quiz_code}))
        return quiz

    def get_with_questions(self, quiz_id: int) -> Optional[QuizWithQuestions]:
        with self.store.lock:
            quiz = self.quiz_repo.get(quiz_id)
            if quiz is None:
                return None
            return quiz, self.question_repo.list_by_quiz(quiz_id)

    def get_by_code(self, code: str) -> Optional[QuizWithQuestions]:
        with self.store.lock:
            quiz = self.quiz_repo.get_by_code(code)
            if quiz is None:
                return None
            return quiz, self.question_repo.list_by_quiz(quiz.id)

    def list_questions(self, quiz_id: int) -> Optional[List[models.QuizQuestion]]:
        found = self.get_with_questions(quiz_id)
        return found[1] if found else None

    def add_question(self, quiz_id: int, payload: QuizQuestionIn) -> Optional[models.QuizQuestion]:
        """Attach a question to a quiz; `None` when the quiz does not exist.

        Without an explicit `order` the question goes after the current last one.
        """
        with self.store.lock:
            if self.quiz_repo.get(quiz_id) is None:
                return None
            order = payload.order
            if order is None:
                existing = self.question_repo.list_by_quiz(quiz_id)
                order = existing[-1].order + 1 if existing else 1
            return self.question_repo.create(models.QuizQuestion(
                quiz_id=quiz_id,
                question_text=payload.question_text,
                question_type=payload.question_type,
                options=payload.options,
                correct_answer=payload.correct_answer,
                order=order,
            ))

    def update_question(self, quiz_id: int, question_id: int, changes: Dict) -> Optional[models.QuizQuestion]:
        """Merge `changes` into a question of `quiz_id`.

        The merged question must still be well formed; otherwise
        ValueError is raised and nothing is stored.
        """
        with self.store.lock:
            current = self.question_repo.get(question_id)
            if current is None or current.quiz_id != quiz_id:
                return None
            options = check_question_shape(
                changes.get('question_type', current.question_type),
                changes.get('options', current.options),
                changes.get('correct_answer', current.correct_answer),
            )
            if 'options' in changes or options != current.options:
                changes = {**changes, 'options': options}
            return self.question_repo.update(question_id, changes)

    def delete_question(self, quiz_id: int, question_id: int) -> bool:
        with self.store.lock:
            current = self.question_repo.get(question_id)
            if current is None or current.quiz_id != quiz_id:
                return False
            return self.question_repo.delete(question_id)

    def submit_attempt(self, quiz_id: int, payload: AttemptIn) -> Optional[models.QuizAttempt]:
        """Score the submitted answers against the quiz's current questions and store the attempt."""
        with self.store.lock:
            if self.quiz_repo.get(quiz_id) is None:
                return None
            questions = self.question_repo.list_by_quiz(quiz_id)
            answers = [models.AttemptAnswer(question_id=a.question_id, answer=a.answer) for a in payload.answers]
            result = score_attempt(questions, answers)
            attempt = self.attempt_repo.create(models.QuizAttempt(
                quiz_id=quiz_id,
                taker_name=payload.taker_name,
                score=result.score,
                total_questions=result.total_questions,
                answers=answers,
            ))
        logger.info("attempt_scored %s", json.dumps({
            'quiz_id': quiz_id, 'attempt_id': attempt.id,
            'score': attempt.score, 'total_questions': attempt.total_questions,
        }))
        return attempt

    def list_attempts(self, quiz_id: int) -> Optional[List[models.QuizAttempt]]:
        with self.store.lock:
            if self.quiz_repo.get(quiz_id) is None:
                return None
            return self.attempt_repo.list_by_quiz(quiz_id)

    def delete_quiz(self, quiz_id: int, creator_name: Optional[str], is_admin: bool) -> bool:
        """Delete a quiz with its questions and attempts.

        Only an admin or the quiz's creator may delete it; anyone else
        gets `PermissionDenied`. Returns False for unknown quizzes.
        """
        with self.store.lock:
            quiz = self.quiz_repo.get(quiz_id)
            if quiz is None:
                return False
            if not is_admin and quiz.creator_name != creator_name:
                raise PermissionDenied('only the creator or an admin can delete this quiz')
            return self.quiz_repo.delete(quiz_id)
