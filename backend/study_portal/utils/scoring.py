"""Scoring for quiz attempts.

`score_attempt` is pure: it reads the quiz's current questions and the
submitted answers and returns the score. Persisting the attempt is the
caller's job.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..models import AttemptAnswer, QuizQuestion


@dataclass(frozen=True)
class ScoreResult:
    score: int
    total_questions: int


def score_attempt(questions: Sequence[QuizQuestion], answers: Iterable[AttemptAnswer]) -> ScoreResult:
    """Count submitted answers that exactly match the stored correct answer.

    - `total_questions` is the number of questions on the quiz, not the
      number of answers submitted; unanswered questions count as wrong.
    - Comparison is exact (case-sensitive, no trimming).
    - Answers for unknown question ids are ignored.
    - Only the first answer given for a question is scored, so a
      resubmitted question cannot push the score above the total.
    """
    correct_by_id = {q.id: q.correct_answer for q in questions}
    seen = set()
    score = 0
    for item in answers:
        if item.question_id in seen or item.question_id not in correct_by_id:
            continue
        seen.add(item.question_id)
        if item.answer == correct_by_id[item.question_id]:
            score += 1
    return ScoreResult(score=score, total_questions=len(correct_by_id))
