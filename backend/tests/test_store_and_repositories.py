import random
import threading

import pytest

from study_portal import models
from study_portal.repositories import (
    ExamDayRepository,
    ExamWeekRepository,
    FileRepository,
    QuizAttemptRepository,
    QuizQuestionRepository,
    QuizRepository,
)
from study_portal.schemas import ExamDayIn, ExamWeekIn, ExamWeekUpdateIn
from study_portal.services import ScheduleService
from study_portal.store import MemoryStore


@pytest.fixture
def mem():
    s = MemoryStore().init()
    yield s
    s.shutdown()


def _file(**overrides):
    data = dict(
        title="Algebra notes", subject="math", grade="12", semester="first",
        file_path="/api/files/download/file-1.pdf", file_name="file-1.pdf",
        file_size=1024, file_type="application/pdf",
    )
    data.update(overrides)
    return models.StudyFile(**data)


def _question(quiz_id, order, correct="true"):
    return models.QuizQuestion(
        quiz_id=quiz_id, question_text=f"Q{order}", question_type="true-false", correct_answer=correct, order=order,
    )


def test_create_then_get_returns_stored_value(mem):
    repo = FileRepository(mem)
    created = repo.create(_file())
    assert created.id == 1
    assert created.upload_date is not None
    fetched = repo.get(created.id)
    assert fetched == created
    assert fetched.model_dump(exclude={"id", "upload_date"}) == _file().model_dump(exclude={"id", "upload_date"})


def test_get_unknown_id_returns_none(mem):
    assert FileRepository(mem).get(42) is None
    assert ExamWeekRepository(mem).get(42) is None


def test_update_merges_only_given_fields(mem):
    repo = FileRepository(mem)
    created = repo.create(_file())
    updated = repo.update(created.id, {"title": "Geometry", "id": 99, "not_a_field": "x"})
    assert updated.id == created.id
    assert updated.title == "Geometry"
    assert updated.subject == created.subject
    assert updated.upload_date == created.upload_date
    assert repo.get(created.id).title == "Geometry"
    assert repo.get(99) is None


def test_update_with_empty_payload_is_noop(mem):
    repo = ExamWeekRepository(mem)
    week = repo.create(models.ExamWeek(name="Week 1"))
    assert repo.update(week.id, {}) == week
    assert repo.get(week.id) == week


def test_update_unknown_id_returns_none(mem):
    assert QuizRepository(mem).update(7, {"title": "x"}) is None


def test_update_keeps_quiz_code_and_created_at(mem):
    repo = QuizRepository(mem)
    a = repo.create(models.Quiz(title="A", subject="math", creator_name="sara"))
    b = repo.create(models.Quiz(title="B", subject="math", creator_name="omar"))
    updated = repo.update(b.id, {"quiz_code": a.quiz_code, "created_at": None, "title": "B2"})
    assert updated.title == "B2"
    assert updated.quiz_code == b.quiz_code
    assert updated.created_at == b.created_at
    codes = [q.quiz_code for q in repo.list_all()]
    assert len(set(codes)) == 2
    assert repo.get_by_code(a.quiz_code).id == a.id


def test_update_keeps_upload_date(mem):
    repo = FileRepository(mem)
    created = repo.create(_file())
    assert repo.update(created.id, {"upload_date": None}) == created
    assert repo.get(created.id).upload_date == created.upload_date


def test_delete_reports_existence(mem):
    repo = FileRepository(mem)
    created = repo.create(_file())
    assert repo.delete(created.id) is True
    assert repo.get(created.id) is None
    assert repo.delete(created.id) is False


def test_ids_are_never_reused(mem):
    repo = ExamWeekRepository(mem)
    first = repo.create(models.ExamWeek(name="a"))
    repo.delete(first.id)
    second = repo.create(models.ExamWeek(name="b"))
    assert second.id == first.id + 1


def test_returned_records_are_copies(mem):
    repo = QuizQuestionRepository(mem)
    q = repo.create(models.QuizQuestion(
        quiz_id=1, question_text="pick", question_type="multiple-choice", options=["a", "b"], correct_answer="a",
    ))
    q.options.append("c")
    q.question_text = "changed"
    stored = repo.get(q.id)
    assert stored.options == ["a", "b"]
    assert stored.question_text == "pick"


def test_delete_week_cascades_to_its_days(mem):
    weeks, days = ExamWeekRepository(mem), ExamDayRepository(mem)
    week = weeks.create(models.ExamWeek(name="Finals"))
    other = weeks.create(models.ExamWeek(name="Midterms"))
    for day in ("sunday", "monday", "tuesday"):
        days.create(models.ExamDay(week_id=week.id, day=day, date="1/1", subject="math", lessons="all"))
    kept = days.create(models.ExamDay(week_id=other.id, day="sunday", date="2/2", subject="arabic", lessons="1-3"))

    assert weeks.delete(week.id) is True
    assert days.list_by_week(week.id) == []
    assert days.list_by_week(other.id) == [kept]
    assert weeks.delete(week.id) is False


def test_delete_quiz_cascades_to_questions_and_attempts(mem):
    quizzes = QuizRepository(mem)
    questions = QuizQuestionRepository(mem)
    attempts = QuizAttemptRepository(mem)
    quiz = quizzes.create(models.Quiz(title="T", subject="math", creator_name="sara"))
    other = quizzes.create(models.Quiz(title="U", subject="math", creator_name="ali"))
    for order in (1, 2, 3):
        questions.create(_question(quiz.id, order))
    questions.create(_question(other.id, 1))
    attempts.create(models.QuizAttempt(quiz_id=quiz.id, taker_name="a", score=1, total_questions=3))
    attempts.create(models.QuizAttempt(quiz_id=quiz.id, taker_name="b", score=2, total_questions=3))

    assert quizzes.delete(quiz.id) is True
    assert questions.list_by_quiz(quiz.id) == []
    assert attempts.list_by_quiz(quiz.id) == []
    assert len(questions.list_by_quiz(other.id)) == 1


def test_delete_missing_day_or_question_has_no_side_effect(mem):
    days = ExamDayRepository(mem)
    questions = QuizQuestionRepository(mem)
    day = days.create(models.ExamDay(week_id=1, day="sunday", date="", subject="", lessons=""))
    question = questions.create(_question(1, 1))
    assert days.delete(999) is False
    assert questions.delete(999) is False
    assert days.list_all() == [day]
    assert questions.list_all() == [question]


def test_list_files_by_filters(mem):
    repo = FileRepository(mem)
    a = repo.create(_file(subject="math", semester="first"))
    b = repo.create(_file(subject="math", semester="second"))
    c = repo.create(_file(subject="physics", semester="first"))
    assert repo.list_by_filters("all", "all", "all") == [a, b, c]
    assert repo.list_by_filters("12", "math", "first") == [a]
    assert repo.list_by_filters("all", "math", "all") == [a, b]
    assert repo.list_by_filters("all", "all", "first") == [a, c]
    assert repo.list_by_filters("all", "Math", "all") == []


def test_questions_sorted_by_order_for_any_insertion_sequence(mem):
    repo = QuizQuestionRepository(mem)
    orders = list(range(1, 21))
    random.Random(7).shuffle(orders)
    for order in orders:
        repo.create(_question(5, order))
    repo.create(_question(6, 0))
    listed = repo.list_by_quiz(5)
    assert [q.order for q in listed] == sorted(orders)


def test_days_listed_in_weekday_order(mem):
    repo = ExamDayRepository(mem)
    for day in ("thursday", "sunday", "tuesday", "monday"):
        repo.create(models.ExamDay(week_id=3, day=day, date="", subject="", lessons=""))
    assert [d.day for d in repo.list_by_week(3)] == ["sunday", "monday", "tuesday", "thursday"]


def test_attempts_listed_newest_first(mem):
    repo = QuizAttemptRepository(mem)
    created = [repo.create(models.QuizAttempt(quiz_id=1, taker_name=name)) for name in ("a", "b", "c")]
    listed = repo.list_by_quiz(1)
    assert [a.id for a in listed] == [a.id for a in reversed(created)]
    assert all(a.submitted_at is not None for a in listed)


def test_quiz_create_sets_code_defaults_and_timestamp(mem):
    quiz = QuizRepository(mem).create(models.Quiz(title="T", subject="math", creator_name="sara", quiz_code="MINE00"))
    assert quiz.quiz_code != "MINE00"
    assert len(quiz.quiz_code) == 6
    assert quiz.is_public is True
    assert quiz.created_at is not None
    assert QuizRepository(mem).get_by_code(quiz.quiz_code) == quiz


def test_quiz_code_collision_is_retried(mem):
    repo = QuizRepository(mem)
    codes = iter(["AAAAAA", "AAAAAA", "AAAAAA", "BBBBBB"])
    first = repo.create(models.Quiz(title="1", subject="s", creator_name="c"), code_factory=lambda: next(codes))
    second = repo.create(models.Quiz(title="2", subject="s", creator_name="c"), code_factory=lambda: next(codes))
    assert first.quiz_code == "AAAAAA"
    assert second.quiz_code == "BBBBBB"


def test_quiz_code_retries_are_bounded(mem):
    repo = QuizRepository(mem)
    repo.create(models.Quiz(title="1", subject="s", creator_name="c"), code_factory=lambda: "ZZZZZZ")
    with pytest.raises(RuntimeError):
        repo.create(models.Quiz(title="2", subject="s", creator_name="c"), code_factory=lambda: "ZZZZZZ", max_attempts=3)
    assert len(repo.list_all()) == 1


def test_store_lifecycle():
    s = MemoryStore()
    assert not s.is_open
    with pytest.raises(RuntimeError):
        ExamWeekRepository(s).list_all()
    s.init()
    ExamWeekRepository(s).create(models.ExamWeek(name="x"))
    s.shutdown()
    assert not s.is_open
    s.init()
    assert ExamWeekRepository(s).list_all() == []
    assert ExamWeekRepository(s).create(models.ExamWeek(name="y")).id == 1


def _run_threads(target, count):
    threads = [threading.Thread(target=target) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_concurrent_creates_get_distinct_sequential_ids(mem):
    repo = ExamWeekRepository(mem)

    def worker():
        for i in range(200):
            repo.create(models.ExamWeek(name=f"w{i}"))

    _run_threads(worker, 8)
    ids = sorted(w.id for w in repo.list_all())
    assert ids == list(range(1, 1601))


def test_concurrent_quiz_creates_get_unique_codes(mem):
    repo = QuizRepository(mem)

    def worker():
        for i in range(50):
            repo.create(models.Quiz(title=f"q{i}", subject="math", creator_name="c"))

    _run_threads(worker, 4)
    codes = [q.quiz_code for q in repo.list_all()]
    assert len(codes) == 200
    assert len(set(codes)) == 200


def test_week_delete_racing_day_inserts_leaves_no_orphans(mem):
    schedule = ScheduleService(mem)
    week, _ = schedule.create_week(ExamWeekIn(name="Finals", days=[]))
    other, _ = schedule.create_week(ExamWeekIn(name="Midterms", days=[ExamDayIn(day="sunday")]))
    first_added = threading.Event()
    deleted = []

    def add_days():
        for _ in range(300):
            found = schedule.update_week(week.id, ExamWeekUpdateIn(days=[ExamDayIn(day="monday")]))
            first_added.set()
            if found is None:
                break

    def delete_week():
        first_added.wait(timeout=5)
        deleted.append(schedule.delete_week(week.id))

    adder = threading.Thread(target=add_days)
    deleter = threading.Thread(target=delete_week)
    adder.start()
    deleter.start()
    adder.join()
    deleter.join()

    assert deleted == [True]
    assert schedule.get_week(week.id) is None
    assert ExamDayRepository(mem).list_by_week(week.id) == []
    assert [d.day for d in ExamDayRepository(mem).list_by_week(other.id)] == ["sunday"]
