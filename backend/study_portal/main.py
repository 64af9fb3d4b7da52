"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the study portal backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and translate "not found" results and domain errors into HTTP
status codes.

Endpoints implemented:
- POST /api/auth/login
- GET/POST /api/files, GET/PUT/DELETE /api/files/{id}
- GET /api/files/download/{file_name}, GET /api/files/preview/{file_name}
- GET/POST /api/exams/weeks, GET/PUT/DELETE /api/exams/weeks/{id}
- GET/POST /api/quizzes, GET/DELETE /api/quizzes/{id}
- GET /api/quizzes/code/{code}
- GET/POST /api/quizzes/{id}/questions, PUT/DELETE /api/quizzes/{id}/questions/{question_id}
- GET/POST /api/quizzes/{id}/attempts
- GET /api/quizzes/{id}/export
"""

import json
import logging
import os
import time
import uuid
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, Response

from . import models, services
from .auth import get_current_admin, get_optional_admin
from .config import settings
from .repositories import ALL, ExamWeekRepository, FileRepository
from .schemas import (
    AttemptIn,
    ExamWeekIn,
    ExamWeekUpdateIn,
    FileMetadataIn,
    FileUpdateIn,
    LoginIn,
    QuizDeleteIn,
    QuizIn,
    QuizQuestionIn,
    QuizQuestionUpdateIn,
    TokenOut,
    UserOut,
)
from .store import MemoryStore, get_store, init_store
from .utils import uploads
from .utils.printable import export_filename, render_quiz_html
from .utils.quiz_codes import normalize_quiz_code
from .utils.rate_limit import LoginThrottle

app = FastAPI(title="Study Portal API")
logger = logging.getLogger("study_portal.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_login_throttle = LoginThrottle(max_failures=settings.LOGIN_RATE_LIMIT_PER_MIN, window_seconds=60)

# Wide-open CORS keeps the local browser client working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

services.AuthService(init_store()).ensure_admin(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


def _week_payload(week: models.ExamWeek, days: List[models.ExamDay]) -> dict:
    return {**week.model_dump(), 'days': days}


def _stored_file_or_404(file_name: str):
    path = uploads.stored_path(file_name)
    if path is None:
        raise HTTPException(status_code=404, detail='file not found')
    return path


# --- Authentication ---

@app.post('/api/auth/login', response_model=TokenOut)
def login(payload: LoginIn, request: Request, store: MemoryStore = Depends(get_store)):
    """Check admin credentials and return a bearer token.

    Repeated failures for the same client and username are throttled
    with 429 and a `Retry-After` header.
    """
    key = f"{request.client.host if request.client else 'unknown'}:{payload.username}"
    allowed, retry_after = _login_throttle.check(key)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f'too many failed logins; retry after {retry_after}s',
            headers={'Retry-After': str(retry_after)},
        )
    auth = services.AuthService(store)
    user = auth.verify(payload.username, payload.password)
    if not user:
        _login_throttle.record_failure(key)
        logger.warning("login_failed %s", json.dumps({'username': payload.username}, ensure_ascii=True))
        raise HTTPException(status_code=401, detail='invalid credentials')
    _login_throttle.reset(key)
    return TokenOut(access_token=auth.issue_token(user), user=UserOut(id=user.id, username=user.username))


# --- Files ---

@app.get('/api/files', response_model=List[models.StudyFile])
def list_files(grade: str = ALL, subject: str = ALL, semester: str = ALL, store: MemoryStore = Depends(get_store)):
    """List files, optionally narrowed by grade, subject and semester (`all` = any)."""
    return FileRepository(store).list_by_filters(grade or ALL, subject or ALL, semester or ALL)


@app.get('/api/files/download/{file_name}')
def download_file(file_name: str):
    """Send a stored binary as an attachment."""
    return FileResponse(_stored_file_or_404(file_name), filename=file_name)


@app.get('/api/files/preview/{file_name}')
def preview_file(file_name: str):
    """Send a stored binary inline so the browser can display it."""
    return FileResponse(
        _stored_file_or_404(file_name),
        media_type=uploads.preview_content_type(file_name),
        filename=file_name,
        content_disposition_type="inline",
    )


@app.get('/api/files/{file_id}', response_model=models.StudyFile)
def get_file(file_id: int, store: MemoryStore = Depends(get_store)):
    f = FileRepository(store).get(file_id)
    if not f:
        raise HTTPException(status_code=404, detail='file not found')
    return f


@app.post('/api/files', status_code=201, response_model=models.StudyFile)
def upload_file(
    file: UploadFile = File(...),
    title: str = Form(..., min_length=1),
    subject: models.Subject = Form(...),
    grade: models.Grade = Form(...),
    semester: models.Semester = Form(...),
    store: MemoryStore = Depends(get_store),
    admin: models.User = Depends(get_current_admin),
):
    """Upload a study file with its metadata (admin only).

    Accepts PDF, Office documents, PNG/JPEG images and plain text up to
    `MAX_UPLOAD_BYTES`. Images must actually decode as images.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail='no file')
    if not uploads.is_safe_name(file.filename):
        raise HTTPException(status_code=400, detail='invalid filename')
    content_type = file.content_type or ''
    if content_type not in uploads.ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail='file type not allowed; upload a PDF, Word, Excel, PowerPoint, image, or text file',
        )
    payload = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail='file too large')
    if content_type.startswith('image/') and not uploads.is_valid_image(payload):
        raise HTTPException(status_code=415, detail='file content is not a valid image')
    meta = FileMetadataIn(title=title, subject=subject, grade=grade, semester=semester)
    created = services.FileService(store).upload(payload, file.filename, content_type, meta)
    logger.info("file_uploaded %s", json.dumps({'file_id': created.id, 'admin': admin.username}, ensure_ascii=True))
    return created


@app.put('/api/files/{file_id}', response_model=models.StudyFile)
def update_file(
    file_id: int,
    payload: FileUpdateIn,
    store: MemoryStore = Depends(get_store),
    admin: models.User = Depends(get_current_admin),
):
    """Edit a file's metadata (admin only); omitted fields are kept."""
    updated = services.FileService(store).update_metadata(file_id, payload.model_dump(exclude_unset=True, exclude_none=True))
    if not updated:
        raise HTTPException(status_code=404, detail='file not found')
    return updated


@app.delete('/api/files/{file_id}')
def delete_file(file_id: int, store: MemoryStore = Depends(get_store), admin: models.User = Depends(get_current_admin)):
    if not services.FileService(store).delete(file_id):
        raise HTTPException(status_code=404, detail='file not found')
    return {'status': 'ok', 'message': 'file deleted'}


# --- Exam schedule ---

@app.get('/api/exams/weeks', response_model=List[models.ExamWeek])
def list_weeks(store: MemoryStore = Depends(get_store)):
    return ExamWeekRepository(store).list_all()


@app.get('/api/exams/weeks/{week_id}')
def get_week(week_id: int, store: MemoryStore = Depends(get_store)):
    """Return a week with its days in calendar order."""
    found = services.ScheduleService(store).get_week(week_id)
    if not found:
        raise HTTPException(status_code=404, detail='exam week not found')
    return _week_payload(*found)


@app.post('/api/exams/weeks', status_code=201)
def create_week(payload: ExamWeekIn, store: MemoryStore = Depends(get_store), admin: models.User = Depends(get_current_admin)):
    """Create a week and its active days (admin only)."""
    return _week_payload(*services.ScheduleService(store).create_week(payload))


@app.put('/api/exams/weeks/{week_id}')
def update_week(
    week_id: int,
    payload: ExamWeekUpdateIn,
    store: MemoryStore = Depends(get_store),
    admin: models.User = Depends(get_current_admin),
):
    """Rename a week and upsert/delete its days (admin only)."""
    found = services.ScheduleService(store).update_week(week_id, payload)
    if not found:
        raise HTTPException(status_code=404, detail='exam week not found')
    return _week_payload(*found)


@app.delete('/api/exams/weeks/{week_id}')
def delete_week(week_id: int, store: MemoryStore = Depends(get_store), admin: models.User = Depends(get_current_admin)):
    """Delete a week together with all of its days (admin only)."""
    if not services.ScheduleService(store).delete_week(week_id):
        raise HTTPException(status_code=404, detail='exam week not found')
    return {'status': 'ok', 'message': 'exam week deleted'}


# --- Quizzes ---

@app.get('/api/quizzes', response_model=List[models.Quiz])
def list_quizzes(public_only: bool = False, store: MemoryStore = Depends(get_store)):
    return services.QuizService(store).list_quizzes(public_only=public_only)


@app.post('/api/quizzes', status_code=201, response_model=models.Quiz)
def create_quiz(payload: QuizIn, store: MemoryStore = Depends(get_store)):
    """Create a quiz; the response carries its generated `quiz_code`."""
    try:
        return services.QuizService(store).create_quiz(payload)
    except RuntimeError as e:
        logger.error("quiz_code_exhausted %s", e)
        raise HTTPException(status_code=503, detail=str(e))


@app.get('/api/quizzes/code/{code}')
def get_quiz_by_code(code: str, store: MemoryStore = Depends(get_store)):
    """Look a quiz up by its code (case-insensitive) and return it with its questions."""
    found = services.QuizService(store).get_by_code(normalize_quiz_code(code))
    if not found:
        raise HTTPException(status_code=404, detail='quiz not found')
    quiz, questions = found
    return {'quiz': quiz, 'questions': questions}


@app.get('/api/quizzes/{quiz_id}')
def get_quiz(quiz_id: int, store: MemoryStore = Depends(get_store)):
    found = services.QuizService(store).get_with_questions(quiz_id)
    if not found:
        raise HTTPException(status_code=404, detail='quiz not found')
    quiz, questions = found
    return {'quiz': quiz, 'questions': questions}


@app.delete('/api/quizzes/{quiz_id}')
def delete_quiz(
    quiz_id: int,
    payload: Optional[QuizDeleteIn] = Body(default=None),
    creator_name: Optional[str] = None,
    store: MemoryStore = Depends(get_store),
    admin: Optional[models.User] = Depends(get_optional_admin),
):
    """Delete a quiz with its questions and attempts.

    Allowed for an authenticated admin, or for anyone naming the quiz's
    creator (in the JSON body or the `creator_name` query parameter).
    """
    name = payload.creator_name if payload and payload.creator_name is not None else creator_name
    try:
        deleted = services.QuizService(store).delete_quiz(quiz_id, name, is_admin=admin is not None)
    except services.PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail='quiz not found')
    return {'status': 'ok', 'message': 'quiz deleted'}


@app.get('/api/quizzes/{quiz_id}/questions', response_model=List[models.QuizQuestion])
def list_questions(quiz_id: int, store: MemoryStore = Depends(get_store)):
    questions = services.QuizService(store).list_questions(quiz_id)
    if questions is None:
        raise HTTPException(status_code=404, detail='quiz not found')
    return questions


@app.post('/api/quizzes/{quiz_id}/questions', status_code=201, response_model=models.QuizQuestion)
def add_question(quiz_id: int, payload: QuizQuestionIn, store: MemoryStore = Depends(get_store)):
    question = services.QuizService(store).add_question(quiz_id, payload)
    if not question:
        raise HTTPException(status_code=404, detail='quiz not found')
    return question


@app.put('/api/quizzes/{quiz_id}/questions/{question_id}', response_model=models.QuizQuestion)
def update_question(quiz_id: int, question_id: int, payload: QuizQuestionUpdateIn, store: MemoryStore = Depends(get_store)):
    """Partially update a question; the result must still be a valid question."""
    try:
        question = services.QuizService(store).update_question(
            quiz_id, question_id, payload.model_dump(exclude_unset=True, exclude_none=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not question:
        raise HTTPException(status_code=404, detail='question not found')
    return question


@app.delete('/api/quizzes/{quiz_id}/questions/{question_id}')
def delete_question(quiz_id: int, question_id: int, store: MemoryStore = Depends(get_store)):
    if not services.QuizService(store).delete_question(quiz_id, question_id):
        raise HTTPException(status_code=404, detail='question not found')
    return {'status': 'ok', 'message': 'question deleted'}


@app.post('/api/quizzes/{quiz_id}/attempts', status_code=201, response_model=models.QuizAttempt)
def submit_attempt(quiz_id: int, payload: AttemptIn, store: MemoryStore = Depends(get_store)):
    """Score and store a quiz attempt.

    Unanswered questions count as wrong; the score is computed against
    the quiz's questions at submission time.
    """
    attempt = services.QuizService(store).submit_attempt(quiz_id, payload)
    if not attempt:
        raise HTTPException(status_code=404, detail='quiz not found')
    return attempt


@app.get('/api/quizzes/{quiz_id}/attempts', response_model=List[models.QuizAttempt])
def list_attempts(quiz_id: int, store: MemoryStore = Depends(get_store)):
    """Return the quiz's attempts, newest first."""
    attempts = services.QuizService(store).list_attempts(quiz_id)
    if attempts is None:
        raise HTTPException(status_code=404, detail='quiz not found')
    return attempts


@app.get('/api/quizzes/{quiz_id}/export')
def export_quiz(quiz_id: int, store: MemoryStore = Depends(get_store)):
    """Download a printable HTML version of the quiz (without answers)."""
    found = services.QuizService(store).get_with_questions(quiz_id)
    if not found:
        raise HTTPException(status_code=404, detail='quiz not found')
    quiz, questions = found
    return Response(
        content=render_quiz_html(quiz, questions),
        media_type='text/html; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename="{export_filename(quiz)}"'},
    )


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Study Portal API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Study Portal API</h1>
        <p>Quick links for local testing:</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/api/files">Files</a></li>
          <li><a href="/api/exams/weeks">Exam weeks</a></li>
          <li><a href="/api/quizzes">Quizzes</a></li>
        </ul>
        <p>Admin routes take HTTP Basic credentials or a token from <code>/api/auth/login</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
