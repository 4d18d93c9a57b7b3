"""
Pydantic Schemas for the Contracts API
======================================

Input schemas validate and coerce raw request data (JSON bodies and query
strings). Output schemas shape contract records for JSON responses.

Wire format is camelCase (``startDate``, ``clientId``); Python attributes are
snake_case. Both spellings are accepted on input.
"""

import json
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .db.models import ContractType, ContractStatus, RiskLevel, Priority, UserRole, ClientType

logger = logging.getLogger(__name__)

# Upper bounds keep OFFSET/LIMIT inside the database integer range
MAX_PAGE = 100_000
MAX_PAGE_SIZE = 100


SortField = Literal["createdAt", "title", "value", "startDate", "endDate"]
SortOrder = Literal["asc", "desc"]


class CamelModel(BaseModel):
    """Base model: camelCase aliases, populate by either name"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# COERCION HELPERS
# =============================================================================

def _is_date_only(raw: str) -> bool:
    return len(raw) == 10 and raw[4] == "-" and raw[7] == "-"


def parse_datetime_input(value: Any) -> Any:
    """
    Coerce an ISO date or datetime string into a naive UTC datetime.

    Timezone-aware values are converted to UTC. Non-string values other than
    dates are passed through for pydantic to judge.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValueError("Invalid date: empty string")
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00").replace("z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid date: {value!r}")
    else:
        return value

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_end_of_range(value: Any) -> Any:
    """Like parse_datetime_input, but a bare date means the end of that day."""
    if isinstance(value, str) and _is_date_only(value.strip()):
        day = parse_datetime_input(value)
        return day + timedelta(days=1) - timedelta(microseconds=1)
    return parse_datetime_input(value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def serialize_tags(tags: Optional[List[str]]) -> str:
    """Tags are stored as a JSON array string"""
    return json.dumps(list(tags or []))


def deserialize_tags(raw: Any) -> List[str]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return [tag for tag in raw if isinstance(tag, str)]
    try:
        tags = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable tags value")
        return []
    if not isinstance(tags, list):
        return []
    return [tag for tag in tags if isinstance(tag, str)]


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

_NON_NULLABLE_FIELDS = (
    "title", "type", "start_date", "client_id", "currency", "risk_level", "priority", "tags",
)


class ContractCreate(CamelModel):
    """Create contract request"""
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    type: ContractType
    value: Optional[float] = Field(None, gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    start_date: datetime
    end_date: Optional[datetime] = None
    renewal_terms: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.MEDIUM
    priority: Priority = Priority.MEDIUM
    tags: List[str] = Field(default_factory=list)
    client_id: str = Field(..., min_length=1)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        return parse_datetime_input(value)

    @field_validator("title", mode="after")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value


class ContractUpdate(CamelModel):
    """
    Partial update. Only fields present in the body are applied.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    type: Optional[ContractType] = None
    value: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    renewal_terms: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    client_id: Optional[str] = Field(None, min_length=1)

    @field_validator(*_NON_NULLABLE_FIELDS, mode="before")
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value):
        return parse_datetime_input(value)

    @field_validator("title", mode="after")
    @classmethod
    def _title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly sent by the caller, keyed by attribute name"""
        return self.model_dump(exclude_unset=True)


class ContractQuery(CamelModel):
    """List query (built from the query string)"""
    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)
    search: Optional[str] = None
    status: Optional[ContractStatus] = None
    client_id: Optional[str] = None
    type: Optional[ContractType] = None
    risk_level: Optional[RiskLevel] = None
    sort_by: SortField = "createdAt"
    sort_order: SortOrder = "desc"

    @field_validator("search", "client_id", "status", "type", "risk_level", mode="before")
    @classmethod
    def _blank_is_absent(cls, value):
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value


class StatusUpdate(CamelModel):
    """Single-field status change"""
    status: ContractStatus


class SearchParams(CamelModel):
    """Free-text search query"""
    q: str = Field(..., min_length=1)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("q", mode="before")
    @classmethod
    def _strip_query(cls, value):
        return value.strip() if isinstance(value, str) else value


class StatsWindowQuery(CamelModel):
    """Optional window bounds for statistics"""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    compare_start_date: Optional[datetime] = None
    compare_end_date: Optional[datetime] = None

    @field_validator("start_date", "compare_start_date", mode="before")
    @classmethod
    def _parse_start(cls, value):
        return parse_datetime_input(_blank_to_none(value))

    @field_validator("end_date", "compare_end_date", mode="before")
    @classmethod
    def _parse_end(cls, value):
        return parse_end_of_range(_blank_to_none(value))


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class ClientSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    client_type: ClientType
    industry: Optional[str] = None


class LawyerSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    email: str
    role: UserRole


class ContractCounts(CamelModel):
    documents: int = 0
    ai_analyses: int = 0


class ContractOut(CamelModel):
    """Contract as returned by the API"""
    id: str
    title: str
    description: Optional[str] = None
    type: ContractType
    status: ContractStatus
    risk_level: RiskLevel
    priority: Priority
    value: Optional[float] = None
    currency: str
    start_date: datetime
    end_date: Optional[datetime] = None
    renewal_terms: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    client_id: str
    assigned_lawyer_id: str
    client: Optional[ClientSummary] = None
    assigned_lawyer: Optional[LawyerSummary] = None
    counts: ContractCounts = Field(default_factory=ContractCounts)
    created_at: datetime
    updated_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def _load_tags(cls, value):
        return deserialize_tags(value)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Pagination(CamelModel):
    """Pagination metadata for list responses"""
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if limit else 0,
            has_next=page * limit < total,
            has_prev=page > 1,
        )


# =============================================================================
# RESPONSE ENVELOPE
# =============================================================================

def success_envelope(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Pagination] = None,
) -> Dict[str, Any]:
    """Uniform ``{success, data, pagination, message}`` body"""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination.model_dump(by_alias=True)
    if message is not None:
        body["message"] = message
    return body


def error_envelope(error: str, details: Any = None) -> Dict[str, Any]:
    """Uniform ``{success: false, error, details}`` body"""
    body: Dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return body
