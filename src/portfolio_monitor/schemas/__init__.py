"""Pydantic schemas for API and runtime use. Not persisted to the relational DB."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventType(str, Enum):
    NEWS = "NEWS"
    SEC_FILING = "SEC_FILING"


class EventStatus(str, Enum):
    PENDING_ANALYSIS = "PENDING_ANALYSIS"
    ANALYZED = "ANALYZED"
    FAILED = "FAILED"


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TickerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


# ---- Events ----


class ImpactAssessment(BaseModel):
    market_implications: str = ""
    financial_impact: str = ""
    strategic_significance: str = ""


class EventAnalysis(BaseModel):
    """AI-generated analysis attached to an event by the pipeline."""

    summary: str = ""
    key_insights: list[str] = Field(default_factory=list)
    impact_assessment: ImpactAssessment = Field(default_factory=ImpactAssessment)
    related_context: str = ""
    investigation_areas: list[str] = Field(default_factory=list)
    confidence_level: ConfidenceLevel = ConfidenceLevel.MEDIUM


class ProcessingMetadata(BaseModel):
    similar_events_count: int = 0
    model_version: str | None = None


class Event(BaseModel):
    """A detected news article or SEC filing about a ticker.

    Read-only here: the detection/analysis pipeline owns these records.
    sentiment_score is only meaningful for analyzed NEWS events.
    """

    model_config = ConfigDict(extra="ignore")

    event_id: str
    ticker: str
    event_type: EventType
    timestamp: str  # ISO 8601
    headline: str = ""
    url: str = ""
    status: EventStatus
    sentiment_score: float | None = None
    summary: str | None = None

    # SEC filing specific
    items_reported: str | None = None
    primary_item: str | None = None
    content_summary: str | None = None

    analysis: EventAnalysis | None = None
    detected_at: str | None = None
    analyzed_at: str | None = None
    processing_metadata: ProcessingMetadata | None = None


# ---- Metrics ----


class EventsByType(BaseModel):
    NEWS: int = 0
    SEC_FILING: int = 0


class EventsByStatus(BaseModel):
    PENDING_ANALYSIS: int = 0
    ANALYZED: int = 0
    FAILED: int = 0


class SentimentDistribution(BaseModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class TickerCount(BaseModel):
    ticker: str
    count: int


class DailyActivity(BaseModel):
    date: str  # YYYY-MM-DD
    count: int


class PortfolioMetrics(BaseModel):
    total_events: int = 0
    events_by_type: EventsByType = Field(default_factory=EventsByType)
    events_by_status: EventsByStatus = Field(default_factory=EventsByStatus)
    sentiment_distribution: SentimentDistribution = Field(default_factory=SentimentDistribution)
    top_tickers: list[TickerCount] = Field(default_factory=list)
    recent_activity: list[DailyActivity] = Field(default_factory=list)


# ---- Watchlists ----


class WatchlistTicker(BaseModel):
    symbol: str = Field(min_length=1, max_length=32)
    name: str = ""
    status: TickerStatus = TickerStatus.ACTIVE

    @field_validator("symbol")
    @classmethod
    def _strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Ticker symbol must not be empty")
        return v


class Watchlist(BaseModel):
    user_id: str
    tickers: list[WatchlistTicker] = Field(default_factory=list)
    webhook_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class WatchlistChanges(BaseModel):
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class WatchlistUpdate(BaseModel):
    """PUT /watchlist body. Omitting webhook_url keeps the stored one; null clears it."""

    tickers: list[WatchlistTicker | str]
    webhook_url: str | None = None


class WebhookTestRequest(BaseModel):
    webhook_url: str


# ---- Auth / users ----


class AuthRequest(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _check_username(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        if len(v) > 64:
            raise ValueError("Username must be at most 64 characters")
        return v

    @field_validator("password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        if len(v) > 128:
            raise ValueError("Password must be at most 128 characters")
        return v


class UserIdentity(BaseModel):
    """Who the current session belongs to."""

    id: str
    username: str


class UserPublic(BaseModel):
    """User record as clients may see it (no password hash)."""

    id: str
    username: str
    created_at: datetime | None = None


# ---- Response envelopes ----


class SuccessResponse(BaseModel):
    success: bool = True


class MessageResponse(SuccessResponse):
    message: str


class UserResponse(SuccessResponse):
    user: UserIdentity


class UserRecordResponse(SuccessResponse):
    user: UserPublic


class UserListResponse(SuccessResponse):
    users: list[UserPublic]


class EventListResponse(SuccessResponse):
    count: int
    events: list[Event]


class EventResponse(SuccessResponse):
    event: Event


class PortfolioResponse(SuccessResponse):
    metrics: PortfolioMetrics


class WatchlistResponse(SuccessResponse):
    watchlist: Watchlist


class WatchlistUpdateResponse(WatchlistResponse):
    changes: WatchlistChanges


class HealthResponse(SuccessResponse):
    status: str
    timestamp: str


__all__ = [
    "AuthRequest",
    "ConfidenceLevel",
    "DailyActivity",
    "Event",
    "EventAnalysis",
    "EventListResponse",
    "EventResponse",
    "EventStatus",
    "EventType",
    "EventsByStatus",
    "EventsByType",
    "HealthResponse",
    "ImpactAssessment",
    "MessageResponse",
    "PortfolioMetrics",
    "PortfolioResponse",
    "ProcessingMetadata",
    "SentimentDistribution",
    "SuccessResponse",
    "TickerCount",
    "TickerStatus",
    "UserIdentity",
    "UserListResponse",
    "UserPublic",
    "UserRecordResponse",
    "UserResponse",
    "Watchlist",
    "WatchlistChanges",
    "WatchlistResponse",
    "WatchlistTicker",
    "WatchlistUpdate",
    "WatchlistUpdateResponse",
    "WebhookTestRequest",
]
