"""
Contracts API Router
====================

Endpoints (all require ``Authorization: Bearer <jwt>``):
- GET    /api/v1/contracts                  - List, filter, sort and paginate
- POST   /api/v1/contracts                  - Create (status DRAFT)
- GET    /api/v1/contracts/stats            - Summary and period-over-period changes
- GET    /api/v1/contracts/search?q=        - Free-text search
- GET    /api/v1/contracts/{id}             - Fetch one
- PUT    /api/v1/contracts/{id}             - Partial update
- PATCH  /api/v1/contracts/{id}/status      - Change status
- DELETE /api/v1/contracts/{id}             - Delete
- POST   /api/v1/contracts/{id}/duplicate   - Copy into a new DRAFT
"""

import logging

from fastapi import APIRouter, Depends

from .auth import AuthContext
from .contracts import ContractService
from .dependencies import contract_query, get_contract_service, require_auth, search_params, stats_window
from .schemas import (
    ContractCreate, ContractQuery, ContractUpdate, SearchParams, StatsWindowQuery, StatusUpdate,
    success_envelope,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["Contracts"])


@router.get("")
async def list_contracts(
    auth: AuthContext = Depends(require_auth),
    query: ContractQuery = Depends(contract_query),
    service: ContractService = Depends(get_contract_service),
):
    """List contracts visible to the caller"""
    contracts, pagination = await service.list_contracts(query, auth)
    return success_envelope(
        data=[c.to_json() for c in contracts],
        pagination=pagination,
        message="Contracts retrieved successfully",
    )


@router.post("", status_code=201)
async def create_contract(
    data: ContractCreate,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.create_contract(data, auth)
    return success_envelope(data=contract.to_json(), message="Contract created successfully")


@router.get("/stats")
async def contract_stats(
    auth: AuthContext = Depends(require_auth),
    window: StatsWindowQuery = Depends(stats_window),
    service: ContractService = Depends(get_contract_service),
):
    """Statistics with current vs comparison period changes"""
    stats = await service.get_stats(auth, window)
    return success_envelope(data=stats, message="Contract statistics retrieved successfully")


@router.get("/search")
async def search_contracts(
    auth: AuthContext = Depends(require_auth),
    params: SearchParams = Depends(search_params),
    service: ContractService = Depends(get_contract_service),
):
    contracts = await service.search_contracts(params.q, params.limit, auth)
    return success_envelope(
        data=[c.to_json() for c in contracts],
        message=f'Found {len(contracts)} contracts matching "{params.q}"',
    )


@router.get("/{contract_id}")
async def get_contract(
    contract_id: str,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.get_contract(contract_id, auth)
    return success_envelope(data=contract.to_json(), message="Contract retrieved successfully")


@router.put("/{contract_id}")
async def update_contract(
    contract_id: str,
    data: ContractUpdate,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    """Only the fields present in the body are changed"""
    contract = await service.update_contract(contract_id, data, auth)
    return success_envelope(data=contract.to_json(), message="Contract updated successfully")


@router.patch("/{contract_id}/status")
async def update_contract_status(
    contract_id: str,
    data: StatusUpdate,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.update_status(contract_id, data.status, auth)
    return success_envelope(
        data=contract.to_json(),
        message=f"Contract status updated to {data.status.value}",
    )


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: str,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    await service.delete_contract(contract_id, auth)
    return success_envelope(message="Contract deleted successfully")


@router.post("/{contract_id}/duplicate", status_code=201)
async def duplicate_contract(
    contract_id: str,
    auth: AuthContext = Depends(require_auth),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.duplicate_contract(contract_id, auth)
    return success_envelope(data=contract.to_json(), message="Contract duplicated successfully")
