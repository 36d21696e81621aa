"""Initial schema: permissions, credentials, installations, channel blocklist

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Tenant-level default permissions
    op.create_table(
        'tenant_defaults',
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('permissions', JSONType, nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('tenant_id')
    )

    # Per-user overrides
    op.create_table(
        'user_permissions',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('overrides', JSONType, nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('user_id', 'tenant_id')
    )
    op.create_index('ix_user_permissions_tenant', 'user_permissions', ['tenant_id'])

    # Credential registry
    op.create_table(
        'credentials',
        sa.Column('jti', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('issued_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('jti')
    )
    op.create_index('ix_credentials_user_tenant', 'credentials', ['user_id', 'tenant_id'])
    op.create_index('ix_credentials_tenant', 'credentials', ['tenant_id'])
    op.create_index('ix_credentials_expires_at', 'credentials', ['expires_at'])
    op.create_index(
        'uq_credentials_active_identity',
        'credentials',
        ['user_id', 'tenant_id'],
        unique=True,
        postgresql_where=sa.text('NOT revoked'),
        sqlite_where=sa.text('NOT revoked'),
    )

    # Installations
    op.create_table(
        'installations',
        sa.Column('canonical_id', sa.String(), nullable=False),
        sa.Column('workspace_id', sa.String(), nullable=True),
        sa.Column('enterprise_id', sa.String(), nullable=True),
        sa.Column('is_enterprise_install', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('execution_credential_encrypted', sa.Text(), nullable=False),
        sa.Column('bot_id', sa.String(), nullable=True),
        sa.Column('bot_user_id', sa.String(), nullable=True),
        sa.Column('payload', JSONType, nullable=False),
        sa.Column('installed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('canonical_id')
    )
    op.create_index('ix_installations_workspace_id', 'installations', ['workspace_id'])
    op.create_index('ix_installations_enterprise_id', 'installations', ['enterprise_id'])

    # Channel blocklist
    op.create_table(
        'resource_blocklist',
        sa.Column('resource_id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('block_read', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('block_write', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('actor', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('resource_id', 'tenant_id')
    )
    op.create_index('ix_resource_blocklist_tenant', 'resource_blocklist', ['tenant_id'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_index('ix_resource_blocklist_tenant', table_name='resource_blocklist')
    op.drop_table('resource_blocklist')
    op.drop_index('ix_installations_enterprise_id', table_name='installations')
    op.drop_index('ix_installations_workspace_id', table_name='installations')
    op.drop_table('installations')
    op.drop_index('uq_credentials_active_identity', table_name='credentials')
    op.drop_index('ix_credentials_expires_at', table_name='credentials')
    op.drop_index('ix_credentials_tenant', table_name='credentials')
    op.drop_index('ix_credentials_user_tenant', table_name='credentials')
    op.drop_table('credentials')
    op.drop_index('ix_user_permissions_tenant', table_name='user_permissions')
    op.drop_table('user_permissions')
    op.drop_table('tenant_defaults')
