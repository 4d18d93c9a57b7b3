"""
Database Package - SQLAlchemy
=============================

Relational persistence for contract management.
"""

from .models import (
    Base,
    User, Client, Contract, ContractDocument, AIAnalysis,
    UserRole, ContractType, ContractStatus, RiskLevel, Priority, ClientType, AnalysisStatus,
    ELEVATED_ROLES, ACTIVE_STATUSES,
    utc_now,
)
from .session import Database

__all__ = [
    # Base
    "Base",
    # Models
    "User", "Client", "Contract", "ContractDocument", "AIAnalysis",
    # Enums
    "UserRole", "ContractType", "ContractStatus", "RiskLevel", "Priority",
    "ClientType", "AnalysisStatus",
    "ELEVATED_ROLES", "ACTIVE_STATUSES",
    # Helpers
    "utc_now",
    # Session
    "Database",
]
