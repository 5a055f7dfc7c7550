"""
Database models for organizations, teams, users and policies.
"""
from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from policygate.infrastructure.database.base import Base


# Association tables for many-to-many relationships
team_members = Table(
    "team_members",
    Base.metadata,
    Column("team_id", String(128), ForeignKey("teams.id"), primary_key=True),
    Column("user_id", String(128), ForeignKey("users.id"), primary_key=True),
)

# Attachment tables. policy_id has no foreign key: a missing policy row
# surfaces as a dangling attachment at read time.
user_policies = Table(
    "user_policies",
    Base.metadata,
    Column("user_id", String(128), ForeignKey("users.id"), primary_key=True),
    Column("policy_id", String(128), primary_key=True),
)

team_policies = Table(
    "team_policies",
    Base.metadata,
    Column("team_id", String(128), ForeignKey("teams.id"), primary_key=True),
    Column("policy_id", String(128), primary_key=True),
)

organization_policies = Table(
    "organization_policies",
    Base.metadata,
    Column("org_id", String(20), ForeignKey("organizations.id"), primary_key=True),
    Column("policy_id", String(128), primary_key=True),
)


class OrganizationModel(Base):
    """Organization, the root of isolation."""
    __tablename__ = "organizations"

    id = Column(String(20), primary_key=True)
    name = Column(String(64), nullable=False)
    description = Column(String(30))

    teams = relationship("TeamModel", back_populates="organization")
    users = relationship("UserModel", back_populates="organization")


class TeamModel(Base):
    """Team with a materialized path from the organization root."""
    __tablename__ = "teams"

    id = Column(String(128), primary_key=True)
    name = Column(String(30), nullable=False)
    description = Column(String(90))
    team_parent_id = Column(String(128), ForeignKey("teams.id"))
    org_id = Column(String(20), ForeignKey("organizations.id"), nullable=False)
    # Dot separated ids, root first (ltree on postgres)
    path = Column(Text, nullable=False)

    organization = relationship("OrganizationModel", back_populates="teams")
    members = relationship("UserModel", secondary=team_members, back_populates="teams")

    __table_args__ = (
        Index("idx_teams_org_path", "org_id", "path"),
    )


class UserModel(Base):
    """User belonging to one organization."""
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    name = Column(String(50), nullable=False)
    org_id = Column(String(20), ForeignKey("organizations.id"), nullable=False)

    organization = relationship("OrganizationModel", back_populates="users")
    teams = relationship("TeamModel", secondary=team_members, back_populates="members")


class PolicyModel(Base):
    """Versioned policy whose statements are stored as a JSON document."""
    __tablename__ = "policies"

    id = Column(String(128), primary_key=True)
    version = Column(String(20))
    name = Column(String(64), nullable=False)
    org_id = Column(String(20), ForeignKey("organizations.id"), nullable=False)
    statements = Column(JSON)

    __table_args__ = (
        Index("idx_policies_org", "org_id"),
    )


class ReferenceActionModel(Base):
    """Catalog of known action strings."""
    __tablename__ = "ref_actions"

    action = Column(String(100), primary_key=True)
