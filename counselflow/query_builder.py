"""
Contract Query Builder
======================

Turns a validated list/search request plus the caller into a ``QueryPlan``:
a predicate tree, a sort and a page. Plans are plain immutable values with no
knowledge of SQLAlchemy; ``counselflow.repository`` compiles them.

Field names are the camelCase names used on the wire (``assignedLawyerId``,
``createdAt``). ``client.name`` reaches through to the owning client.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Tuple, Union

from .auth import AuthContext
from .schemas import ContractQuery


# =============================================================================
# PREDICATES
# =============================================================================

@dataclass(frozen=True)
class Eq:
    field: str
    value: Any


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Range:
    """Inclusive lower bound, inclusive or exclusive upper bound"""
    field: str
    gte: Optional[datetime] = None
    lte: Optional[datetime] = None
    lt: Optional[datetime] = None


@dataclass(frozen=True)
class IsNull:
    field: str


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match on any of the fields"""
    fields: Tuple[str, ...]
    term: str


@dataclass(frozen=True)
class And:
    parts: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    parts: Tuple["Predicate", ...]


@dataclass(frozen=True)
class _Always:
    """Matches every row"""

    def __repr__(self) -> str:
        return "TRUE"


TRUE = _Always()

Predicate = Union[Eq, In, Range, IsNull, Contains, And, Or, _Always]


def all_of(*parts: Predicate) -> Predicate:
    """AND the parts together, dropping TRUE and flattening nested ANDs"""
    flat = []
    for part in parts:
        if part is TRUE:
            continue
        if isinstance(part, And):
            flat.extend(part.parts)
        else:
            flat.append(part)
    if not flat:
        return TRUE
    if len(flat) == 1:
        return flat[0]
    return And(tuple(flat))


def any_of(*parts: Predicate) -> Predicate:
    if any(part is TRUE for part in parts):
        return TRUE
    if len(parts) == 1:
        return parts[0]
    return Or(tuple(parts))


# =============================================================================
# SORT / PAGE / PLAN
# =============================================================================

@dataclass(frozen=True)
class SortSpec:
    field: str = "createdAt"
    descending: bool = True


@dataclass(frozen=True)
class PageSpec:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class QueryPlan:
    predicate: Predicate
    sort: SortSpec
    page: PageSpec


# =============================================================================
# BUILDERS
# =============================================================================

SEARCH_FIELDS = ("title", "description", "client.name")


def visibility_predicate(auth: AuthContext) -> Predicate:
    """Contracts the caller may see: own assignments, or all for elevated roles"""
    if auth.is_elevated:
        return TRUE
    return Eq("assignedLawyerId", auth.user_id)


def search_predicate(term: Optional[str]) -> Predicate:
    if not term:
        return TRUE
    return Contains(SEARCH_FIELDS, term)


def build_list_plan(query: ContractQuery, auth: AuthContext) -> QueryPlan:
    """Plan for a paginated, filtered contract listing"""
    filters = [
        visibility_predicate(auth),
        search_predicate(query.search),
    ]
    if query.status is not None:
        filters.append(Eq("status", query.status))
    if query.client_id is not None:
        filters.append(Eq("clientId", query.client_id))
    if query.type is not None:
        filters.append(Eq("type", query.type))
    if query.risk_level is not None:
        filters.append(Eq("riskLevel", query.risk_level))

    return QueryPlan(
        predicate=all_of(*filters),
        sort=SortSpec(field=query.sort_by, descending=query.sort_order == "desc"),
        page=PageSpec(page=query.page, limit=query.limit),
    )


def build_search_plan(term: str, limit: int, auth: AuthContext) -> QueryPlan:
    """Plan for free-text search: most recently updated first, first page only"""
    return QueryPlan(
        predicate=all_of(visibility_predicate(auth), search_predicate(term)),
        sort=SortSpec(field="updatedAt", descending=True),
        page=PageSpec(page=1, limit=limit),
    )
