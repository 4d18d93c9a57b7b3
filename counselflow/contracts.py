"""
Contract Service
================

Business operations behind the ``/api/v1/contracts`` routes.

Every operation takes the caller's ``AuthContext`` explicitly. Visibility
denials are reported as ``NotFoundError``, the same as missing records.

Blocking repository calls run in worker threads; independent reads are
gathered concurrently.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .auth import AuthContext
from .db.models import ContractStatus, utc_now
from .db.session import Database
from .errors import NotFoundError, PersistenceError
from .query_builder import build_list_plan, build_search_plan, visibility_predicate
from .repository import ContractRepository
from .schemas import (
    ContractCreate, ContractOut, ContractQuery, ContractUpdate, Pagination, StatsWindowQuery,
)
from .stats import StatsAggregator

logger = logging.getLogger(__name__)

CLIENT_NOT_FOUND = "Client not found or access denied"
CONTRACT_NOT_FOUND = "Contract not found or access denied"

# Fields copied verbatim when duplicating a contract
DUPLICATED_FIELDS = (
    "description", "type", "value", "currency", "end_date", "renewal_terms",
    "risk_level", "priority", "tags", "client_id",
)


class ContractService:
    """Contract use cases for one database"""

    def __init__(self, database: Database, expiring_soon_days: int = 30):
        self.repository = ContractRepository(database)
        self.stats = StatsAggregator(self.repository, expiring_soon_days=expiring_soon_days)

    async def _call(self, failure_message: str, fn, *args):
        """Run a repository call in a worker thread, hiding driver errors"""
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            logger.exception(f"{failure_message}: {e}")
            raise PersistenceError(failure_message)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_contracts(self, query: ContractQuery, auth: AuthContext) -> Tuple[List[ContractOut], Pagination]:
        """One page of visible contracts plus pagination metadata"""
        plan = build_list_plan(query, auth)
        try:
            rows, total = await asyncio.gather(
                asyncio.to_thread(self.repository.fetch_page, plan),
                asyncio.to_thread(self.repository.count, plan.predicate),
            )
        except SQLAlchemyError as e:
            logger.exception(f"Failed to fetch contracts: {e}")
            raise PersistenceError("Failed to fetch contracts")
        return rows, Pagination.build(query.page, query.limit, total)

    async def get_contract(self, contract_id: str, auth: AuthContext) -> ContractOut:
        contract = await self._call(
            "Failed to fetch contract",
            self.repository.get, contract_id, visibility_predicate(auth),
        )
        if contract is None:
            raise NotFoundError(CONTRACT_NOT_FOUND)
        return contract

    async def search_contracts(self, term: str, limit: int, auth: AuthContext) -> List[ContractOut]:
        plan = build_search_plan(term, limit, auth)
        return await self._call("Failed to search contracts", self.repository.fetch_page, plan)

    async def get_stats(self, auth: AuthContext, window: Optional[StatsWindowQuery] = None) -> Dict[str, Any]:
        try:
            return await self.stats.compute(auth, window)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to fetch contract statistics: {e}")
            raise PersistenceError("Failed to fetch contract statistics")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _require_visible_client(self, client_id: str, auth: AuthContext) -> None:
        client = await self._call("Failed to fetch client", self.repository.get_client, client_id)
        if client is None or not auth.can_access(client.assigned_lawyer_id):
            logger.info(f"Client {client_id} not visible to {auth.user_id}")
            raise NotFoundError(CLIENT_NOT_FOUND)

    async def create_contract(self, data: ContractCreate, auth: AuthContext) -> ContractOut:
        """Create a DRAFT contract assigned to the caller"""
        await self._require_visible_client(data.client_id, auth)

        values = data.model_dump()
        values.update(status=ContractStatus.DRAFT, assigned_lawyer_id=auth.user_id)
        return await self._call("Failed to create contract", self.repository.insert, values)

    async def update_contract(self, contract_id: str, data: ContractUpdate, auth: AuthContext) -> ContractOut:
        """Apply the fields present in the request; others are untouched"""
        current = await self.get_contract(contract_id, auth)

        changes = data.changes()
        new_client = changes.get("client_id")
        if new_client is not None and new_client != current.client_id:
            await self._require_visible_client(new_client, auth)

        if not changes:
            return current

        updated = await self._call("Failed to update contract", self.repository.update, contract_id, changes)
        if updated is None:
            raise NotFoundError(CONTRACT_NOT_FOUND)
        logger.info(f"Updated contract {contract_id}: {sorted(changes)}")
        return updated

    async def update_status(self, contract_id: str, status: ContractStatus, auth: AuthContext) -> ContractOut:
        """Set the status; any status may follow any other"""
        await self.get_contract(contract_id, auth)
        updated = await self._call(
            "Failed to update contract status",
            self.repository.update, contract_id, {"status": status},
        )
        if updated is None:
            raise NotFoundError(CONTRACT_NOT_FOUND)
        logger.info(f"Contract {contract_id} status -> {status.value}")
        return updated

    async def delete_contract(self, contract_id: str, auth: AuthContext) -> None:
        await self.get_contract(contract_id, auth)
        deleted = await self._call("Failed to delete contract", self.repository.delete, contract_id)
        if not deleted:
            raise NotFoundError(CONTRACT_NOT_FOUND)

    async def duplicate_contract(self, contract_id: str, auth: AuthContext) -> ContractOut:
        """
        Copy a visible contract into a new DRAFT.

        The copy is titled "<title> (Copy)", starts now, is assigned to the
        caller and keeps the remaining descriptive fields. Documents and
        analyses are not copied.
        """
        original = await self.get_contract(contract_id, auth)
        await self._require_visible_client(original.client_id, auth)

        values = {field: getattr(original, field) for field in DUPLICATED_FIELDS}
        values.update(
            title=f"{original.title} (Copy)",
            start_date=utc_now(),
            status=ContractStatus.DRAFT,
            assigned_lawyer_id=auth.user_id,
        )
        return await self._call("Failed to duplicate contract", self.repository.insert, values)
