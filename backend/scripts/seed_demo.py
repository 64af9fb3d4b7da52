"""CLI smoke run: seed a fresh in-memory store with a demo schedule and quiz.
Usage: python scripts/seed_demo.py [--taker NAME]

Nothing is persisted; the script prints what it created and the score of
a sample attempt so the services can be exercised without the HTTP layer.
"""
import sys
import json
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `study_portal` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from study_portal import services
from study_portal.schemas import AttemptIn, ExamWeekIn, QuizIn, QuizQuestionIn
from study_portal.store import MemoryStore


def main(taker: str = 'demo'):
    store = MemoryStore().init()
    try:
        week, days = services.ScheduleService(store).create_week(ExamWeekIn(name='Midterm week', days=[
            {'day': 'sunday', 'date': '2025-01-05', 'subject': 'math', 'lessons': 'Limits and continuity'},
            {'day': 'tuesday', 'date': '2025-01-07', 'subject': 'physics', 'lessons': 'Kinematics'},
            {'day': 'thursday', 'active': False},
        ]))
        print(f'Created week {week.id} "{week.name}" with {len(days)} days')

        quiz_svc = services.QuizService(store)
        quiz = quiz_svc.create_quiz(QuizIn(title='Derivatives warm-up', subject='math', creator_name='demo'))
        q1 = quiz_svc.add_question(quiz.id, QuizQuestionIn(
            question_text='d/dx x^2 = ?', question_type='multiple-choice', options=['x', '2x', 'x^2'], correct_answer='2x',
        ))
        q2 = quiz_svc.add_question(quiz.id, QuizQuestionIn(
            question_text='The derivative of a constant is zero.', question_type='true-false', correct_answer='true',
        ))
        print(f'Created quiz {quiz.id} with code {quiz.quiz_code}')

        attempt = quiz_svc.submit_attempt(quiz.id, AttemptIn(taker_name=taker, answers=[
            {'question_id': q1.id, 'answer': '2x'},
            {'question_id': q2.id, 'answer': 'false'},
        ]))
        print(json.dumps(attempt.model_dump(mode='json'), indent=2, ensure_ascii=False))
    finally:
        store.shutdown()

if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--taker', default='demo', help='Name recorded on the sample attempt')
    args = parser.parse_args()
    main(taker=args.taker)
