"""Create users, files, links, link_allowed_users, link_access_logs and audit_logs

Revision ID: 001_initial_link_schema
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_link_schema'
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum('USER', 'SUPERUSER', name='userrole')
expiration_type = sa.Enum('NONE', 'DURATION', 'DATE', name='expirationtype')
verification_type = sa.Enum('NONE', 'PASSWORD', 'USERNAME', name='verificationtype')
access_scope = sa.Enum('PUBLIC', 'USERS', 'SELECTED', name='accessscope')
access_type = sa.Enum('INFO', 'VIEW', 'DOWNLOAD', name='accesstype')
access_kind = sa.Enum('INFO', 'VIEW', 'DOWNLOAD', name='accesskind')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('created_at_utc', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'files',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(36), nullable=False),
        sa.Column('original_filename', sa.String(255), nullable=False),
        sa.Column('custom_filename', sa.String(255), nullable=True),
        sa.Column('mimetype', sa.String(255), nullable=False),
        sa.Column('size', sa.BigInteger, nullable=False),
        sa.Column('storage_ref', sa.String(512), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('download_count', sa.Integer, nullable=False),
        sa.Column('created_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_files_owner_id', 'files', ['owner_id'])

    op.create_table(
        'links',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('link_id', sa.String(32), nullable=False),
        sa.Column('custom_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('file_id', sa.String(36), nullable=False),
        sa.Column('created_by', sa.String(36), nullable=False),
        sa.Column('expiration_type', expiration_type, nullable=False),
        sa.Column('expiration_seconds', sa.Integer, nullable=True),
        sa.Column('expires_at_utc', sa.DateTime(timezone=True), nullable=True),
        sa.Column('access_limit', sa.Integer, nullable=True),
        sa.Column('verification_type', verification_type, nullable=False),
        sa.Column('verification_secret_hash', sa.String(255), nullable=True),
        sa.Column('access_scope', access_scope, nullable=False),
        sa.Column('access_type', access_type, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('favorite', sa.Boolean, nullable=False),
        sa.Column('access_count', sa.Integer, nullable=False),
        sa.Column('version', sa.Integer, nullable=False),
        sa.Column('created_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_accessed_at_utc', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['file_id'], ['files.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('created_by', 'custom_name', name='uq_links_owner_custom_name'),
    )
    op.create_index('ix_links_link_id', 'links', ['link_id'], unique=True)
    op.create_index('ix_links_file_id', 'links', ['file_id'])
    op.create_index('ix_links_created_by', 'links', ['created_by'])

    op.create_table(
        'link_allowed_users',
        sa.Column('link_pk', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), primary_key=True),
        sa.ForeignKeyConstraint(['link_pk'], ['links.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'link_access_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('link_pk', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('access_kind', access_kind, nullable=False),
        sa.Column('sequence_number', sa.Integer, nullable=False),
        sa.Column('accessed_at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),  # IPv4/IPv6
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.ForeignKeyConstraint(['link_pk'], ['links.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_link_access_logs_link_pk', 'link_access_logs', ['link_pk'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('at_utc', sa.DateTime(timezone=True), nullable=False),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('actor_user_id', sa.String(36), nullable=True),
        sa.Column('link_pk', sa.String(36), nullable=True),
        sa.Column('details', sa.Text, nullable=True),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_link_pk', 'audit_logs', ['link_pk'])


def downgrade():
    op.drop_index('ix_audit_logs_link_pk', 'audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_link_access_logs_link_pk', 'link_access_logs')
    op.drop_table('link_access_logs')
    op.drop_table('link_allowed_users')
    op.drop_index('ix_links_created_by', 'links')
    op.drop_index('ix_links_file_id', 'links')
    op.drop_index('ix_links_link_id', 'links')
    op.drop_table('links')
    op.drop_index('ix_files_owner_id', 'files')
    op.drop_table('files')
    op.drop_index('ix_users_email', 'users')
    op.drop_index('ix_users_username', 'users')
    op.drop_table('users')
