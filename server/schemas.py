"""Pydantic request/response schemas for the Studycore API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---- Study packs & cards ----

class StudyPackCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)


class StudyPackResponse(BaseModel):
    id: str
    title: str


class FlashcardCreateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=5000)
    answer: str = Field(..., min_length=1, max_length=5000)
    topic: Optional[str] = Field(default=None, max_length=255)


class FlashcardSchema(BaseModel):
    card_id: str
    pack_id: str
    prompt: str
    answer: str
    topic: Optional[str] = None
    ease: float
    interval_days: int
    due_at: Optional[str] = None
    reps: int
    lapses: int


class DueCardsResponse(BaseModel):
    due_count: int
    cards: List[FlashcardSchema]


class TopicCount(BaseModel):
    topic: str
    total_count: int
    due_count: int


class TopicsResponse(BaseModel):
    topics: List[TopicCount]


# ---- Review ----

class ReviewRequest(BaseModel):
    grade: str = Field(..., max_length=16)


class SrsValues(BaseModel):
    ease: float
    interval_days: int
    due_at: str
    reps: int
    lapses: int


class StreakSchema(BaseModel):
    current_streak: int
    longest_streak: int
    last_review_date: Optional[str] = None
    total_reviews: int
    freezes: int
    freeze_just_used: bool


class ReviewResponse(BaseModel):
    success: bool = True
    srs_values: SrsValues
    streak: StreakSchema


class StatsResponse(BaseModel):
    progress: Dict[str, int]
    streak: StreakSchema
    total_cards: int
    due_count: int


# ---- Review sessions ----

class ReviewSessionCreateRequest(BaseModel):
    study_pack_id: str
    topic_filter: Optional[str] = None


class ReviewSessionUpdateRequest(BaseModel):
    cards_reviewed: int = Field(default=0, ge=0)
    accuracy: Optional[float] = Field(default=None, ge=0, le=100)


class ReviewSessionResponse(BaseModel):
    id: str
    study_pack_id: str
    topic_filter: Optional[str] = None
    started_at: str
    ended_at: Optional[str] = None
    cards_reviewed: int
    accuracy: Optional[float] = None


# ---- Quizzes ----

class QuizItemSchema(BaseModel):
    question_id: Optional[str] = None
    question: str = Field(..., min_length=1)
    answer: str
    question_type: str = Field(default="short_answer", pattern="^(mcq|short_answer)$")
    topic: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class QuizCreateRequest(BaseModel):
    study_pack_id: str
    items: List[QuizItemSchema] = Field(..., min_length=1)
    config: Dict[str, Any] = Field(default_factory=dict)


class QuizResponse(BaseModel):
    id: str
    study_pack_id: str
    items: List[QuizItemSchema]
    is_weak_topic_quiz: bool = False
    weak_topics: List[str] = Field(default_factory=list)


class SubmittedAnswer(BaseModel):
    question_id: str
    answer: str = Field(default="", max_length=5000)


class QuizSubmitRequest(BaseModel):
    answers: List[SubmittedAnswer] = Field(default_factory=list)
    start_time: datetime


class QuizResultSchema(BaseModel):
    id: str
    quiz_id: str
    score: float
    duration_s: int
    taken_at: str
    detail_json: Dict[str, Any]


class QuizSubmitResponse(BaseModel):
    success: bool = True
    result: QuizResultSchema
    streak: Optional[StreakSchema] = None


class WeakTopicsRequest(BaseModel):
    weak_topics: List[str] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class QuizHistoryResponse(BaseModel):
    results: List[QuizResultSchema]
    pagination: Pagination


# ---- Health ----

class HealthResponse(BaseModel):
    ok: bool
    version: str
