"""
Shared fixtures: a fresh SQLite database per test, seeded users and clients,
bearer-token helpers and an app client.
"""

from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from counselflow.api import create_app
from counselflow.auth import AuthContext, create_access_token
from counselflow.config import Settings
from counselflow.db import (
    Client, ClientType, Contract, ContractStatus, ContractType, Database, User, UserRole,
)
from counselflow.schemas import serialize_tags


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'contracts.db'}",
        jwt_secret_key="test-secret-key",
        log_level="WARNING",
        rate_limit_enabled=False,
    )


@pytest.fixture
def database(settings):
    db = Database.from_settings(settings)
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def seeded(database):
    """Partner, two lawyers, an inactive user and one client per lawyer"""
    with database.session() as db:
        partner = User(email="partner@firm.test", first_name="Pat", last_name="Partner", role=UserRole.PARTNER)
        lawyer = User(email="lawyer@firm.test", first_name="Lee", last_name="Lawyer", role=UserRole.LAWYER)
        other = User(email="other@firm.test", first_name="Ori", last_name="Other", role=UserRole.LAWYER)
        inactive = User(
            email="gone@firm.test", first_name="Gil", last_name="Gone",
            role=UserRole.LAWYER, is_active=False,
        )
        db.add_all([partner, lawyer, other, inactive])
        db.flush()

        acme = Client(
            name="Acme Corp", email="legal@acme.test", client_type=ClientType.CORPORATION,
            industry="Manufacturing", assigned_lawyer_id=lawyer.id,
        )
        globex = Client(
            name="Globex", email="legal@globex.test", client_type=ClientType.CORPORATION,
            assigned_lawyer_id=other.id,
        )
        db.add_all([acme, globex])
        db.flush()

        return SimpleNamespace(
            partner=_auth(partner),
            lawyer=_auth(lawyer),
            other=_auth(other),
            inactive_id=inactive.id,
            acme_id=acme.id,
            globex_id=globex.id,
        )


def _auth(user: User) -> AuthContext:
    return AuthContext(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
    )


@pytest.fixture
def make_contract(database):
    """Insert a contract directly, bypassing the service"""

    def _make(client_id: str, lawyer_id: str, **overrides) -> str:
        values = dict(
            title="Master Services Agreement",
            type=ContractType.SERVICE_AGREEMENT,
            status=ContractStatus.DRAFT,
            start_date=datetime(2024, 1, 1),
            client_id=client_id,
            assigned_lawyer_id=lawyer_id,
            tags=serialize_tags([]),
        )
        if "tags" in overrides:
            overrides["tags"] = serialize_tags(overrides["tags"])
        values.update(overrides)
        with database.session() as db:
            contract = Contract(**values)
            db.add(contract)
            db.flush()
            return contract.id

    return _make


@pytest.fixture
def headers_for(settings):
    def _headers(user_id: str) -> dict:
        token = create_access_token({"sub": user_id}, settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(settings, database):
    app = create_app(settings, database)
    with TestClient(app) as test_client:
        yield test_client
