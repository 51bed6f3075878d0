"""FastAPI application -- review, streak and quiz routes."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.__version__ import __version__
from server.config import Settings
from server.dependencies import get_current_user_id, get_settings, get_store
from server.schemas import (
    DueCardsResponse,
    FlashcardCreateRequest,
    FlashcardSchema,
    HealthResponse,
    QuizCreateRequest,
    QuizHistoryResponse,
    QuizResponse,
    QuizSubmitRequest,
    QuizSubmitResponse,
    ReviewRequest,
    ReviewResponse,
    ReviewSessionCreateRequest,
    ReviewSessionResponse,
    ReviewSessionUpdateRequest,
    StatsResponse,
    StudyPackCreateRequest,
    StudyPackResponse,
    TopicsResponse,
    WeakTopicsRequest,
)
from server.services import quiz_service, study_service
from server.services.repository import SqlReviewStore
from study.storage import ConflictError

logger = logging.getLogger("studycore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: create tables, nothing else."""
    from server.db.session import init_db
    init_db(get_settings())
    ts = datetime.now(timezone.utc).isoformat()
    logger.info("[%s] Startup: database ready", ts)
    yield
    logger.info("[%s] Shutdown: complete", datetime.now(timezone.utc).isoformat())


app = FastAPI(title="Studycore", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _detail(e: Exception) -> str:
    # str(KeyError) wraps the message in quotes
    return str(e.args[0]) if e.args else str(e)


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "retryable": True},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ---- Health ----

@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True, "version": __version__}


# ---- Study packs & flashcards ----

@app.get("/study-packs", response_model=List[StudyPackResponse])
def list_study_packs(
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    return study_service.list_packs(store, user_id)


@app.post("/study-packs", response_model=StudyPackResponse)
def create_study_pack(
    body: StudyPackCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    return study_service.create_pack(store, user_id, body.title)


@app.post("/study-packs/{pack_id}/flashcards", response_model=FlashcardSchema)
def create_flashcard(
    pack_id: str,
    body: FlashcardCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.add_flashcard(
            store, user_id, pack_id, body.prompt, body.answer, topic=body.topic,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.get("/study-packs/{pack_id}/flashcards/due", response_model=DueCardsResponse)
def due_flashcards(
    pack_id: str,
    topic: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.get_due_cards(store, user_id, pack_id, topic=topic)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.get("/study-packs/{pack_id}/flashcards/topics", response_model=TopicsResponse)
def flashcard_topics(
    pack_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.get_topics(store, user_id, pack_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.get("/study-packs/{pack_id}/flashcards/export")
def export_flashcards(
    pack_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        filename, text = study_service.export_flashcards(store, user_id, pack_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))
    return Response(
        content=text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/flashcards/{card_id}/review", response_model=ReviewResponse)
def review_flashcard(
    card_id: str,
    body: ReviewRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.review_flashcard(store, user_id, card_id, body.grade)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))
    except PermissionError:
        raise HTTPException(status_code=403, detail="Forbidden")


@app.get("/flashcards/stats", response_model=StatsResponse)
def flashcard_stats(
    pack_id: Optional[str] = Query(default=None, alias="packId"),
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.get_stats(store, user_id, pack_id=pack_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


# ---- Review sessions ----

@app.post("/review-sessions", response_model=ReviewSessionResponse)
def create_review_session(
    body: ReviewSessionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.start_review_session(
            store, user_id, body.study_pack_id, topic_filter=body.topic_filter,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.patch("/review-sessions/{session_id}", response_model=ReviewSessionResponse)
def finish_review_session(
    session_id: str,
    body: ReviewSessionUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return study_service.finish_review_session(
            store, user_id, session_id,
            cards_reviewed=body.cards_reviewed, accuracy=body.accuracy,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


# ---- Quizzes ----

@app.post("/quizzes", response_model=QuizResponse)
def create_quiz(
    body: QuizCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return quiz_service.create_quiz(
            store, user_id, body.study_pack_id,
            [item.model_dump() for item in body.items], config=body.config,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.get("/quizzes/{quiz_id}", response_model=QuizResponse)
def get_quiz(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    try:
        return quiz_service.get_quiz(store, user_id, quiz_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.post("/quizzes/{quiz_id}/submit", response_model=QuizSubmitResponse)
def submit_quiz(
    quiz_id: str,
    body: QuizSubmitRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
):
    answers = {a.question_id: a.answer for a in body.answers}
    try:
        return quiz_service.submit_quiz(store, user_id, quiz_id, answers, body.start_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.post("/quizzes/{quiz_id}/weak-topics", response_model=QuizResponse)
def weak_topic_quiz(
    quiz_id: str,
    body: WeakTopicsRequest,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        return quiz_service.weak_topic_quiz(
            store, user_id, quiz_id, body.weak_topics,
            max_per_topic=settings.weak_topic_max_per_topic,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=404, detail=_detail(e))


@app.get("/quiz-results/history", response_model=QuizHistoryResponse)
def quiz_history(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    quiz_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    store: SqlReviewStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    limit = min(limit or settings.history_page_limit, settings.history_max_limit)
    return quiz_service.quiz_history(store, user_id, page=page, limit=limit, quiz_id=quiz_id)
