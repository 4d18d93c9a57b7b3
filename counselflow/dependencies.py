"""
FastAPI dependencies: database, authenticated caller, service and query parsing.
"""

import logging
from typing import Optional, Type, TypeVar

from fastapi import Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .auth import AuthContext, AuthService, decode_token, extract_bearer_token
from .config import Settings
from .contracts import ContractService
from .db.session import Database
from .errors import AuthenticationError, PersistenceError
from .schemas import ContractQuery, SearchParams, StatsWindowQuery

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_contract_service(request: Request) -> ContractService:
    return request.app.state.contract_service


def require_auth(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    settings: Settings = Depends(get_app_settings),
    database: Database = Depends(get_database),
) -> AuthContext:
    """
    Resolve the caller from ``Authorization: Bearer <jwt>``.

    Raises AuthenticationError (401) for a missing, invalid or expired token,
    or when the token's user does not exist or is inactive.
    """
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_token(token, settings)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")

    try:
        with database.session() as db:
            auth = AuthService(db).get_auth_context(payload["sub"])
    except SQLAlchemyError as e:
        logger.exception(f"Failed to load user {payload['sub']}: {e}")
        raise PersistenceError("Failed to authenticate request")
    if auth is None:
        raise AuthenticationError("User not found or inactive")
    return auth


# =============================================================================
# QUERY STRING PARSING
# =============================================================================

def _validate_query(model: Type[ModelT], request: Request) -> ModelT:
    """Validate the raw query string against a schema, reporting like body errors"""
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as exc:
        errors = [dict(err, loc=("query",) + tuple(err["loc"])) for err in exc.errors()]
        raise RequestValidationError(errors)


def contract_query(request: Request) -> ContractQuery:
    return _validate_query(ContractQuery, request)


def search_params(request: Request) -> SearchParams:
    return _validate_query(SearchParams, request)


def stats_window(request: Request) -> StatsWindowQuery:
    return _validate_query(StatsWindowQuery, request)
