"""Initial schema for organizations, teams, users and policies

Revision ID: 001
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    op.create_table('organizations',
        sa.Column('id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=30), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_organizations')
    )

    op.create_table('policies',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('version', sa.String(length=20), nullable=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('org_id', sa.String(length=20), nullable=False),
        sa.Column('statements', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_policies_org_id_organizations'),
        sa.PrimaryKeyConstraint('id', name='pk_policies')
    )
    op.create_index('idx_policies_org', 'policies', ['org_id'], unique=False)

    op.create_table('ref_actions',
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('action', name='pk_ref_actions')
    )

    op.create_table('users',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('org_id', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_users_org_id_organizations'),
        sa.PrimaryKeyConstraint('id', name='pk_users')
    )

    op.create_table('teams',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('description', sa.String(length=90), nullable=True),
        sa.Column('team_parent_id', sa.String(length=128), nullable=True),
        sa.Column('org_id', sa.String(length=20), nullable=False),
        sa.Column('path', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_teams_org_id_organizations'),
        sa.ForeignKeyConstraint(['team_parent_id'], ['teams.id'], name='fk_teams_team_parent_id_teams'),
        sa.PrimaryKeyConstraint('id', name='pk_teams')
    )
    op.create_index('idx_teams_org_path', 'teams', ['org_id', 'path'], unique=False)

    op.create_table('team_members',
        sa.Column('team_id', sa.String(length=128), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], name='fk_team_members_team_id_teams'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_team_members_user_id_users'),
        sa.PrimaryKeyConstraint('team_id', 'user_id', name='pk_team_members')
    )

    op.create_table('user_policies',
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('policy_id', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_user_policies_user_id_users'),
        sa.PrimaryKeyConstraint('user_id', 'policy_id', name='pk_user_policies')
    )

    op.create_table('team_policies',
        sa.Column('team_id', sa.String(length=128), nullable=False),
        sa.Column('policy_id', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], name='fk_team_policies_team_id_teams'),
        sa.PrimaryKeyConstraint('team_id', 'policy_id', name='pk_team_policies')
    )

    op.create_table('organization_policies',
        sa.Column('org_id', sa.String(length=20), nullable=False),
        sa.Column('policy_id', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], name='fk_organization_policies_org_id_organizations'),
        sa.PrimaryKeyConstraint('org_id', 'policy_id', name='pk_organization_policies')
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('organization_policies')
    op.drop_table('team_policies')
    op.drop_table('user_policies')
    op.drop_table('team_members')
    op.drop_index('idx_teams_org_path', table_name='teams')
    op.drop_table('teams')
    op.drop_table('users')
    op.drop_table('ref_actions')
    op.drop_index('idx_policies_org', table_name='policies')
    op.drop_table('policies')
    op.drop_table('organizations')
