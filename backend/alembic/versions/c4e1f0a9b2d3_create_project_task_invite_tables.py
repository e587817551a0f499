"""Create project, task and invite_link tables

Revision ID: c4e1f0a9b2d3
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel
from alembic import op

# revision identifiers, used by Alembic.
revision: str = 'c4e1f0a9b2d3'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the three core tables."""
    op.create_table(
        'project',
        sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default=''),
        sa.Column('owner_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        # Embedded memberships: [{"user_id", "role", "joined_at"}]
        sa.Column('members', sa.JSON(), nullable=True),
        sa.Column('task_ids', sa.JSON(), nullable=True),
        sa.Column('join_by_link_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('pdf_generation_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'task',
        sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('project_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default=''),
        sa.Column('deadline', sa.DateTime(), nullable=False),
        sa.Column('creator_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('assignee_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('progress', sqlmodel.sql.sqltypes.AutoString(), nullable=False, server_default='To Do'),
        sa.Column('progress_history', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_task_project_id'), 'task', ['project_id'], unique=False)

    op.create_table(
        'invite_link',
        sa.Column('id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('project_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('token', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('created_by', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_invite_link_project_id'), 'invite_link', ['project_id'], unique=False)
    op.create_index(op.f('ix_invite_link_token'), 'invite_link', ['token'], unique=True)


def downgrade() -> None:
    """Drop the three core tables."""
    op.drop_index(op.f('ix_invite_link_token'), table_name='invite_link')
    op.drop_index(op.f('ix_invite_link_project_id'), table_name='invite_link')
    op.drop_table('invite_link')
    op.drop_index(op.f('ix_task_project_id'), table_name='task')
    op.drop_table('task')
    op.drop_table('project')
