"""
Contract Service Tests
======================

Service operations against a real SQLite database.
"""

from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from counselflow.contracts import CLIENT_NOT_FOUND, CONTRACT_NOT_FOUND, ContractService
from counselflow.db import AIAnalysis, ContractDocument, ContractStatus, ContractType, RiskLevel, utc_now
from counselflow.errors import NotFoundError, PersistenceError
from counselflow.schemas import ContractCreate, ContractQuery, ContractUpdate


@pytest.fixture
def service(database):
    return ContractService(database)


def _create_body(client_id: str, **overrides) -> ContractCreate:
    body = {
        "title": "Master Services Agreement",
        "type": "SERVICE_AGREEMENT",
        "startDate": "2024-01-01",
        "clientId": client_id,
        "tags": ["a", "b"],
        "value": 12000,
    }
    body.update(overrides)
    return ContractCreate.model_validate(body)


# =============================================================================
# Create / read
# =============================================================================

@pytest.mark.asyncio
async def test_create_assigns_caller_and_starts_as_draft(service, seeded):
    contract = await service.create_contract(_create_body(seeded.acme_id), seeded.lawyer)

    assert contract.status == ContractStatus.DRAFT
    assert contract.assigned_lawyer_id == seeded.lawyer.user_id
    assert contract.tags == ["a", "b"]
    assert contract.client.name == "Acme Corp"
    assert contract.assigned_lawyer.first_name == "Lee"
    assert contract.counts.documents == 0


@pytest.mark.asyncio
async def test_create_against_invisible_client_fails(service, seeded):
    with pytest.raises(NotFoundError) as exc_info:
        await service.create_contract(_create_body(seeded.globex_id), seeded.lawyer)
    assert exc_info.value.message == CLIENT_NOT_FOUND


@pytest.mark.asyncio
async def test_create_against_missing_client_fails(service, seeded):
    with pytest.raises(NotFoundError):
        await service.create_contract(_create_body("missing-client"), seeded.partner)


@pytest.mark.asyncio
async def test_partner_may_create_for_any_client(service, seeded):
    contract = await service.create_contract(_create_body(seeded.globex_id), seeded.partner)
    assert contract.assigned_lawyer_id == seeded.partner.user_id


@pytest.mark.asyncio
async def test_repeated_reads_are_equal(service, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id, tags=["x"])
    first = await service.get_contract(contract_id, seeded.lawyer)
    second = await service.get_contract(contract_id, seeded.lawyer)
    assert first == second


@pytest.mark.asyncio
async def test_other_lawyers_contract_is_not_found(service, seeded, make_contract):
    contract_id = make_contract(seeded.globex_id, seeded.other.user_id)
    with pytest.raises(NotFoundError) as exc_info:
        await service.get_contract(contract_id, seeded.lawyer)
    assert exc_info.value.message == CONTRACT_NOT_FOUND


@pytest.mark.asyncio
async def test_counts_children(service, database, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id)
    with database.session() as db:
        db.add_all([
            ContractDocument(contract_id=contract_id, title="signed.pdf"),
            ContractDocument(contract_id=contract_id, title="draft.docx"),
            AIAnalysis(contract_id=contract_id, type="RISK_REVIEW"),
        ])

    contract = await service.get_contract(contract_id, seeded.lawyer)
    assert contract.counts.documents == 2
    assert contract.counts.ai_analyses == 1


# =============================================================================
# Listing
# =============================================================================

@pytest.mark.asyncio
async def test_list_only_shows_visible_contracts(service, seeded, make_contract):
    mine = make_contract(seeded.acme_id, seeded.lawyer.user_id)
    make_contract(seeded.globex_id, seeded.other.user_id)

    rows, pagination = await service.list_contracts(ContractQuery(), seeded.lawyer)
    assert [c.id for c in rows] == [mine]
    assert pagination.total == 1

    rows, pagination = await service.list_contracts(ContractQuery(), seeded.partner)
    assert pagination.total == 2


@pytest.mark.asyncio
async def test_list_filters_search_and_sort(service, seeded, make_contract):
    make_contract(seeded.acme_id, seeded.lawyer.user_id, title="Office lease", value=300.0,
                  type=ContractType.LICENSE_AGREEMENT)
    make_contract(seeded.acme_id, seeded.lawyer.user_id, title="Supplier NDA", value=100.0,
                  type=ContractType.NDA, risk_level=RiskLevel.HIGH)
    make_contract(seeded.acme_id, seeded.lawyer.user_id, title="Consulting", value=200.0,
                  description="covers the NDA annex", type=ContractType.CONSULTING)

    query = ContractQuery.model_validate({"search": "nda", "sortBy": "value", "sortOrder": "asc"})
    rows, _ = await service.list_contracts(query, seeded.lawyer)
    assert [c.title for c in rows] == ["Supplier NDA", "Consulting"]

    query = ContractQuery.model_validate({"riskLevel": "HIGH"})
    rows, _ = await service.list_contracts(query, seeded.lawyer)
    assert [c.title for c in rows] == ["Supplier NDA"]

    # Client name is searchable too
    query = ContractQuery.model_validate({"search": "ACME"})
    rows, _ = await service.list_contracts(query, seeded.lawyer)
    assert len(rows) == 3


@pytest.mark.asyncio
async def test_search_term_wildcards_match_literally(service, seeded, make_contract):
    make_contract(seeded.acme_id, seeded.lawyer.user_id, title="100% renewal")
    make_contract(seeded.acme_id, seeded.lawyer.user_id, title="1000 units")

    rows = await service.search_contracts("100%", 10, seeded.lawyer)
    assert [c.title for c in rows] == ["100% renewal"]


@pytest.mark.asyncio
async def test_pagination_properties(service, seeded, make_contract):
    for i in range(7):
        make_contract(seeded.acme_id, seeded.lawyer.user_id, title=f"Contract {i}")

    for page in (1, 2, 3, 4):
        query = ContractQuery(page=page, limit=3)
        rows, meta = await service.list_contracts(query, seeded.lawyer)
        assert meta.total == 7
        assert meta.pages == 3
        assert meta.has_next == (page * 3 < 7)
        assert meta.has_prev == (page > 1)
        assert len(rows) == max(0, min(3, 7 - (page - 1) * 3))


@pytest.mark.asyncio
async def test_persistence_failure_is_reported_generically(service, seeded):
    with patch.object(service.repository, "count", side_effect=OperationalError("SELECT", {}, Exception("db down"))):
        with pytest.raises(PersistenceError) as exc_info:
            await service.list_contracts(ContractQuery(), seeded.lawyer)
    assert exc_info.value.message == "Failed to fetch contracts"
    assert exc_info.value.status_code == 500


# =============================================================================
# Update / status / delete / duplicate
# =============================================================================

@pytest.mark.asyncio
async def test_update_applies_only_present_fields(service, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id, description="keep me", tags=["x"])

    updated = await service.update_contract(
        contract_id, ContractUpdate.model_validate({"title": "Renamed", "tags": ["y", "y"]}), seeded.lawyer,
    )
    assert updated.title == "Renamed"
    assert updated.description == "keep me"
    assert updated.tags == ["y", "y"]


@pytest.mark.asyncio
async def test_update_can_clear_nullable_fields(service, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id, value=10.0, end_date=datetime(2025, 1, 1))
    updated = await service.update_contract(
        contract_id, ContractUpdate.model_validate({"value": None, "endDate": None}), seeded.lawyer,
    )
    assert updated.value is None
    assert updated.end_date is None


@pytest.mark.asyncio
async def test_update_cannot_move_to_invisible_client(service, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id)
    with pytest.raises(NotFoundError) as exc_info:
        await service.update_contract(
            contract_id, ContractUpdate.model_validate({"clientId": seeded.globex_id}), seeded.lawyer,
        )
    assert exc_info.value.message == CLIENT_NOT_FOUND


@pytest.mark.asyncio
async def test_any_status_may_follow_any_other(service, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id, status=ContractStatus.TERMINATED)
    updated = await service.update_status(contract_id, ContractStatus.DRAFT, seeded.lawyer)
    assert updated.status == ContractStatus.DRAFT


@pytest.mark.asyncio
async def test_delete_cascades_children(service, database, seeded, make_contract):
    contract_id = make_contract(seeded.acme_id, seeded.lawyer.user_id)
    with database.session() as db:
        db.add(ContractDocument(contract_id=contract_id, title="signed.pdf"))
        db.add(AIAnalysis(contract_id=contract_id, type="SUMMARY"))

    await service.delete_contract(contract_id, seeded.lawyer)

    with pytest.raises(NotFoundError):
        await service.get_contract(contract_id, seeded.lawyer)
    with database.session() as db:
        assert db.query(ContractDocument).count() == 0
        assert db.query(AIAnalysis).count() == 0


@pytest.mark.asyncio
async def test_delete_invisible_contract_is_not_found(service, seeded, make_contract):
    contract_id = make_contract(seeded.globex_id, seeded.other.user_id)
    with pytest.raises(NotFoundError):
        await service.delete_contract(contract_id, seeded.lawyer)
    # Still there for its owner
    assert (await service.get_contract(contract_id, seeded.other)).id == contract_id


@pytest.mark.asyncio
async def test_duplicate_copies_fields(service, seeded, make_contract):
    contract_id = make_contract(
        seeded.acme_id, seeded.lawyer.user_id,
        title="Lease", description="Office", value=500.0, currency="EUR",
        end_date=datetime(2026, 1, 1), renewal_terms="auto", risk_level=RiskLevel.HIGH,
        tags=["a", "b"], status=ContractStatus.EXECUTED,
    )
    before = utc_now()

    copy = await service.duplicate_contract(contract_id, seeded.lawyer)
    original = await service.get_contract(contract_id, seeded.lawyer)

    assert copy.id != original.id
    assert copy.title == "Lease (Copy)"
    assert copy.status == ContractStatus.DRAFT
    assert copy.start_date >= before.replace(microsecond=0)
    for field in ("description", "type", "value", "currency", "end_date", "renewal_terms",
                  "risk_level", "priority", "tags", "client_id"):
        assert getattr(copy, field) == getattr(original, field)
