"""
Contract Repository (SQLAlchemy)
================================

Compiles ``QueryPlan`` values into SQLAlchemy statements and runs them.

Every public method opens its own session through ``Database.session()``;
methods may run concurrently in worker threads. Rows are converted to
``ContractOut`` while the session is still open.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_, true, select, func
from sqlalchemy.orm import Session, contains_eager, joinedload

from .db.models import Client, Contract, ContractDocument, AIAnalysis
from .db.session import Database
from .query_builder import (
    And, Contains, Eq, In, IsNull, Or, Predicate, QueryPlan, Range, SortSpec, TRUE, all_of,
)
from .schemas import ClientSummary, ContractCounts, ContractOut, LawyerSummary, serialize_tags

logger = logging.getLogger(__name__)


# Wire field name -> column
FIELD_COLUMNS = {
    "id": Contract.id,
    "title": Contract.title,
    "description": Contract.description,
    "status": Contract.status,
    "type": Contract.type,
    "riskLevel": Contract.risk_level,
    "priority": Contract.priority,
    "clientId": Contract.client_id,
    "assignedLawyerId": Contract.assigned_lawyer_id,
    "createdAt": Contract.created_at,
    "updatedAt": Contract.updated_at,
    "startDate": Contract.start_date,
    "endDate": Contract.end_date,
    "value": Contract.value,
    "client.name": Client.name,
}


def _column(field: str):
    try:
        return FIELD_COLUMNS[field]
    except KeyError:
        raise ValueError(f"Unknown contract field: {field}")


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def compile_predicate(predicate: Predicate):
    """Translate a predicate tree into a SQLAlchemy boolean expression"""
    if predicate is TRUE:
        return true()
    if isinstance(predicate, Eq):
        return _column(predicate.field) == predicate.value
    if isinstance(predicate, In):
        return _column(predicate.field).in_(list(predicate.values))
    if isinstance(predicate, IsNull):
        return _column(predicate.field).is_(None)
    if isinstance(predicate, Range):
        column = _column(predicate.field)
        conditions = []
        if predicate.gte is not None:
            conditions.append(column >= predicate.gte)
        if predicate.lte is not None:
            conditions.append(column <= predicate.lte)
        if predicate.lt is not None:
            conditions.append(column < predicate.lt)
        return and_(true(), *conditions)
    if isinstance(predicate, Contains):
        pattern = f"%{escape_like(predicate.term)}%"
        return or_(*(_column(f).ilike(pattern, escape="\\") for f in predicate.fields))
    if isinstance(predicate, And):
        return and_(*(compile_predicate(p) for p in predicate.parts))
    if isinstance(predicate, Or):
        return or_(*(compile_predicate(p) for p in predicate.parts))
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def compile_sort(sort: SortSpec):
    column = _column(sort.field)
    return column.desc() if sort.descending else column.asc()


# =============================================================================
# ROW SHAPING
# =============================================================================

_document_count = (
    select(func.count(ContractDocument.id))
    .where(ContractDocument.contract_id == Contract.id)
    .correlate(Contract)
    .scalar_subquery()
)

_analysis_count = (
    select(func.count(AIAnalysis.id))
    .where(AIAnalysis.contract_id == Contract.id)
    .correlate(Contract)
    .scalar_subquery()
)


def _contract_select():
    return (
        select(Contract, _document_count.label("document_count"), _analysis_count.label("analysis_count"))
        .join(Contract.client)
        .options(contains_eager(Contract.client), joinedload(Contract.assigned_lawyer))
    )


def contract_to_out(contract: Contract, document_count: int = 0, analysis_count: int = 0) -> ContractOut:
    """Shape an ORM contract (with client and lawyer loaded) for the API"""
    return ContractOut(
        id=contract.id,
        title=contract.title,
        description=contract.description,
        type=contract.type,
        status=contract.status,
        risk_level=contract.risk_level,
        priority=contract.priority,
        value=contract.value,
        currency=contract.currency,
        start_date=contract.start_date,
        end_date=contract.end_date,
        renewal_terms=contract.renewal_terms,
        tags=contract.tags,
        client_id=contract.client_id,
        assigned_lawyer_id=contract.assigned_lawyer_id,
        client=ClientSummary.model_validate(contract.client) if contract.client else None,
        assigned_lawyer=LawyerSummary.model_validate(contract.assigned_lawyer) if contract.assigned_lawyer else None,
        counts=ContractCounts(documents=document_count or 0, ai_analyses=analysis_count or 0),
        created_at=contract.created_at,
        updated_at=contract.updated_at,
    )


def _prepare_values(values: Dict[str, Any]) -> Dict[str, Any]:
    prepared = dict(values)
    if "tags" in prepared:
        prepared["tags"] = serialize_tags(prepared["tags"])
    return prepared


# =============================================================================
# REPOSITORY
# =============================================================================

class ContractRepository:
    """Blocking data access for contracts. Safe to call from worker threads."""

    def __init__(self, database: Database):
        self.database = database

    # ---- reads ----

    def fetch_page(self, plan: QueryPlan) -> List[ContractOut]:
        stmt = (
            _contract_select()
            .where(compile_predicate(plan.predicate))
            .order_by(compile_sort(plan.sort))
            .offset(plan.page.offset)
            .limit(plan.page.limit)
        )
        with self.database.session() as db:
            rows = db.execute(stmt).all()
            return [contract_to_out(c, docs, analyses) for c, docs, analyses in rows]

    def count(self, predicate: Predicate) -> int:
        stmt = (
            select(func.count(Contract.id))
            .select_from(Contract)
            .join(Contract.client)
            .where(compile_predicate(predicate))
        )
        with self.database.session() as db:
            return db.execute(stmt).scalar_one()

    def sum_value(self, predicate: Predicate) -> float:
        stmt = (
            select(func.coalesce(func.sum(Contract.value), 0.0))
            .select_from(Contract)
            .join(Contract.client)
            .where(compile_predicate(predicate))
        )
        with self.database.session() as db:
            return float(db.execute(stmt).scalar_one() or 0.0)

    def group_counts(self, field: str, predicate: Predicate) -> List[Tuple[Any, int]]:
        """Row counts grouped by one field, as ``(value, count)`` pairs"""
        column = _column(field)
        stmt = (
            select(column, func.count(Contract.id))
            .select_from(Contract)
            .join(Contract.client)
            .where(compile_predicate(predicate))
            .group_by(column)
            .order_by(column)
        )
        with self.database.session() as db:
            return [(value, count) for value, count in db.execute(stmt).all()]

    def get(self, contract_id: str, predicate: Predicate = TRUE) -> Optional[ContractOut]:
        """Fetch one contract if it exists and matches ``predicate``"""
        with self.database.session() as db:
            return self._fetch_one(db, all_of(Eq("id", contract_id), predicate))

    def get_client(self, client_id: str) -> Optional[Client]:
        with self.database.session() as db:
            return db.get(Client, client_id)

    # ---- writes ----

    def insert(self, values: Dict[str, Any]) -> ContractOut:
        with self.database.session() as db:
            contract = Contract(**_prepare_values(values))
            db.add(contract)
            db.flush()
            logger.info(f"Created contract {contract.id} for client {contract.client_id}")
            return self._fetch_one(db, Eq("id", contract.id))

    def update(self, contract_id: str, changes: Dict[str, Any]) -> Optional[ContractOut]:
        """Apply ``changes`` (attribute name -> value). None if the row is gone."""
        with self.database.session() as db:
            contract = db.get(Contract, contract_id)
            if contract is None:
                return None
            for key, value in _prepare_values(changes).items():
                setattr(contract, key, value)
            db.flush()
            return self._fetch_one(db, Eq("id", contract_id))

    def delete(self, contract_id: str) -> bool:
        """Delete a contract; documents and analyses go with it"""
        with self.database.session() as db:
            contract = db.get(Contract, contract_id)
            if contract is None:
                return False
            db.delete(contract)
            logger.info(f"Deleted contract {contract_id}")
            return True

    # ---- helpers ----

    def _fetch_one(self, db: Session, predicate: Predicate) -> Optional[ContractOut]:
        stmt = (
            _contract_select()
            .where(compile_predicate(predicate))
            .execution_options(populate_existing=True)
        )
        row = db.execute(stmt).first()
        if row is None:
            return None
        contract, docs, analyses = row
        return contract_to_out(contract, docs, analyses)
