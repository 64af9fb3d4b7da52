"""Printable (right-to-left) HTML rendering of a quiz.

The document lists the quiz header and every question with empty check
boxes, without revealing correct answers. Browsers print it to PDF.
"""

from html import escape
from typing import Sequence

from ..models import Quiz, QuizQuestion, QuestionType

TRUE_FALSE_LABELS = ("صح", "خطأ")

_STYLE = """
    body { font-family: 'Cairo', 'Arial', sans-serif; padding: 20px; direction: rtl; }
    h1 { text-align: center; color: #333; }
    .quiz-info { margin-bottom: 20px; padding: 10px; background-color: #f5f5f5; border-radius: 5px; }
    .question { margin-bottom: 15px; padding: 10px; border: 1px solid #ddd; border-radius: 5px; }
    .options { margin-top: 10px; list-style-type: none; padding-right: 0; }
    .option { margin-bottom: 5px; padding: 5px; }
"""


def export_filename(quiz: Quiz) -> str:
    return f"quiz-{quiz.quiz_code}.html"


def _question_block(index: int, question: QuizQuestion) -> str:
    if question.question_type == QuestionType.TRUE_FALSE:
        labels = TRUE_FALSE_LABELS
    else:
        labels = question.options
    options = "".join(f'<li class="option">□ {escape(label)}</li>' for label in labels)
    return (
        '<div class="question">'
        f"<h3>{index}. {escape(question.question_text)}</h3>"
        f'<ul class="options">{options}</ul>'
        "</div>"
    )


def render_quiz_html(quiz: Quiz, questions: Sequence[QuizQuestion]) -> str:
    """Return a standalone HTML document for `quiz`; all user text is escaped."""
    blocks = "\n".join(_question_block(i, q) for i, q in enumerate(questions, start=1))
    title = escape(quiz.title)
    return f"""<!DOCTYPE html>
<html dir="rtl">
<head>
  <meta charset="UTF-8">
  <title>{title}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h1>{title}</h1>
  <div class="quiz-info">
    <p><strong>المادة:</strong> {escape(quiz.subject)}</p>
    <p><strong>المنشئ:</strong> {escape(quiz.creator_name)}</p>
    <p><strong>رمز الاختبار:</strong> {escape(quiz.quiz_code)}</p>
  </div>
  <div class="questions">
{blocks}
  </div>
</body>
</html>
"""
