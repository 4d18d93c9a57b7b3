"""
SQLAlchemy Models for Database
==============================

Schema for contract management:
- Users (lawyers and staff) with a firm-wide role
- Clients, each owned by an assigned lawyer
- Contracts, each belonging to one client and assigned to one lawyer
- Contract documents and AI analysis records (counted, cascade on delete)

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Float, Boolean, DateTime, Enum, ForeignKey, Index
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (all stored timestamps are naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Firm-wide user roles"""
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"
    LAWYER = "LAWYER"
    PARALEGAL = "PARALEGAL"
    USER = "USER"


# Roles that can see and act on every contract and client
ELEVATED_ROLES = frozenset({UserRole.ADMIN, UserRole.PARTNER})


class ContractType(str, enum.Enum):
    """Contract categories"""
    SERVICE_AGREEMENT = "SERVICE_AGREEMENT"
    EMPLOYMENT = "EMPLOYMENT"
    NDA = "NDA"
    JOINT_VENTURE = "JOINT_VENTURE"
    LICENSE_AGREEMENT = "LICENSE_AGREEMENT"
    MERGER_ACQUISITION = "MERGER_ACQUISITION"
    PARTNERSHIP = "PARTNERSHIP"
    CONSULTING = "CONSULTING"
    SUPPLY = "SUPPLY"
    DISTRIBUTION = "DISTRIBUTION"


class ContractStatus(str, enum.Enum):
    """Contract status. Any value may follow any other."""
    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    EXECUTED = "EXECUTED"
    TERMINATED = "TERMINATED"
    EXPIRED = "EXPIRED"


# Statuses that count as "in force" for statistics
ACTIVE_STATUSES = (ContractStatus.APPROVED, ContractStatus.EXECUTED)


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ClientType(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    CORPORATION = "CORPORATION"
    GOVERNMENT = "GOVERNMENT"
    NON_PROFIT = "NON_PROFIT"


class AnalysisStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# =============================================================================
# ORGANIZATION MODELS
# =============================================================================

class User(Base):
    """Lawyer or staff member"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    clients = relationship("Client", back_populates="assigned_lawyer")
    contracts = relationship("Contract", back_populates="assigned_lawyer")


class Client(Base):
    """Client of the firm"""
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    client_type = Column(Enum(ClientType), default=ClientType.INDIVIDUAL, nullable=False)
    industry = Column(String(100), nullable=True)
    assigned_lawyer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    assigned_lawyer = relationship("User", back_populates="clients")
    contracts = relationship("Contract", back_populates="client")


# =============================================================================
# CONTRACT MODELS
# =============================================================================

class Contract(Base):
    """Legal agreement under management"""
    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(ContractType), nullable=False)
    status = Column(Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False)
    risk_level = Column(Enum(RiskLevel), default=RiskLevel.MEDIUM, nullable=False)
    priority = Column(Enum(Priority), default=Priority.MEDIUM, nullable=False)

    value = Column(Float, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    renewal_terms = Column(Text, nullable=True)

    client_id = Column(String(36), ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
    assigned_lawyer_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    # JSON-serialized list of strings
    tags = Column(Text, nullable=False, default="[]")

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_contracts_assigned_lawyer", "assigned_lawyer_id"),
        Index("ix_contracts_client", "client_id"),
        Index("ix_contracts_created_at", "created_at"),
        Index("ix_contracts_end_date", "end_date"),
    )

    # Relationships
    client = relationship("Client", back_populates="contracts")
    assigned_lawyer = relationship("User", back_populates="contracts")
    documents = relationship(
        "ContractDocument", back_populates="contract",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    ai_analyses = relationship(
        "AIAnalysis", back_populates="contract",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class ContractDocument(Base):
    """File attached to a contract (metadata only)"""
    __tablename__ = "contract_documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    type = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utc_now)

    contract = relationship("Contract", back_populates="documents")


class AIAnalysis(Base):
    """Result of an AI review run over a contract"""
    __tablename__ = "ai_analyses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.PENDING, nullable=False)
    confidence = Column(Float, nullable=True)
    output = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now)
    completed_at = Column(DateTime, nullable=True)

    contract = relationship("Contract", back_populates="ai_analyses")
