"""Create lifecycle tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Accounts
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('original_email', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('storage_quota_mb', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('storage_used_mb', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('deleted_by', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_deleted_at', 'users', ['deleted_at'])

    op.create_table(
        'download_accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('original_email', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('last_used', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('deleted_by', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_download_accounts_email', 'download_accounts', ['email'])
    op.create_index('ix_download_accounts_deleted_at', 'download_accounts', ['deleted_at'])

    # Files
    op.create_table(
        'files',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('sha1', sa.Text(), nullable=False, server_default=''),
        sa.Column('content_type', sa.Text(), nullable=True),
        sa.Column('upload_date', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('expire_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('unlimited_time', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('downloads_remaining', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unlimited_downloads', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('deleted_by', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    # Quota recompute and the cascade select by (user_id, deleted_at)
    op.create_index('ix_files_user_id_deleted_at', 'files', ['user_id', 'deleted_at'])
    op.create_index('ix_files_deleted_at', 'files', ['deleted_at'])

    op.create_table(
        'download_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('file_id', sa.Text(), nullable=False),
        sa.Column('download_account_id', sa.Integer(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('downloaded_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('file_size', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('file_name', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_authenticated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['file_id'], ['files.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_download_logs_file_id', 'download_logs', ['file_id'])
    op.create_index('ix_download_logs_download_account_id', 'download_logs', ['download_account_id'])

    op.create_table(
        'file_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('request_token', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('used_at', sa.BigInteger(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_token')
    )
    op.create_index('ix_file_requests_user_id', 'file_requests', ['user_id'])
    op.create_index('ix_file_requests_expires_at', 'file_requests', ['expires_at'])

    # Audit log (subject is a soft reference, no foreign keys)
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=True),
        sa.Column('user_email', sa.Text(), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.Text(), nullable=True),
        sa.Column('entity_id', sa.Text(), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('error_msg', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])

    # Runtime configuration overrides
    op.create_table(
        'configuration',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade():
    op.drop_table('configuration')

    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_index('ix_audit_logs_user_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_file_requests_expires_at', table_name='file_requests')
    op.drop_index('ix_file_requests_user_id', table_name='file_requests')
    op.drop_table('file_requests')

    op.drop_index('ix_download_logs_download_account_id', table_name='download_logs')
    op.drop_index('ix_download_logs_file_id', table_name='download_logs')
    op.drop_table('download_logs')

    op.drop_index('ix_files_deleted_at', table_name='files')
    op.drop_index('ix_files_user_id_deleted_at', table_name='files')
    op.drop_table('files')

    op.drop_index('ix_download_accounts_deleted_at', table_name='download_accounts')
    op.drop_index('ix_download_accounts_email', table_name='download_accounts')
    op.drop_table('download_accounts')

    op.drop_index('ix_users_deleted_at', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
