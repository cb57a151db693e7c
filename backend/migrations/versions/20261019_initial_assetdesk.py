"""Initial AssetDesk schema: accounts, affiliations, assets, requests, assignments, sessions

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('auth_provider', sa.String(length=16), nullable=False),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('company_logo', sa.String(length=512), nullable=True),
        sa.Column('package_limit', sa.Integer(), nullable=True),
        sa.Column('current_employees', sa.Integer(), nullable=True),
        sa.Column('subscription', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("role IN ('employee', 'hr')", name='ck_users_role'),
        sa.CheckConstraint(
            'current_employees IS NULL OR current_employees >= 0',
            name='ck_users_current_employees_non_negative',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)
        batch_op.create_index(batch_op.f('ix_users_role'), ['role'], unique=False)

    op.create_table('affiliations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('hr_email', sa.String(length=255), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('company_logo', sa.String(length=512), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'hr_email', name='uq_affiliations_employee_hr'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('affiliations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_affiliations_employee_id'), ['employee_id'], unique=False)
        batch_op.create_index('ix_affiliations_hr_email', ['hr_email'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index('ix_session_tokens_user_revoked', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. INVENTORY
    # ==========================================================================
    op.create_table('assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_image', sa.String(length=512), nullable=True),
        sa.Column('product_type', sa.String(length=32), nullable=False),
        sa.Column('product_quantity', sa.Integer(), nullable=False),
        sa.Column('available_quantity', sa.Integer(), nullable=False),
        sa.Column('hr_email', sa.String(length=255), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint(
            'available_quantity >= 0 AND available_quantity <= product_quantity',
            name='ck_assets_available_within_total',
        ),
        sa.CheckConstraint("product_type IN ('Returnable', 'Non-returnable')", name='ck_assets_product_type'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('assets', schema=None) as batch_op:
        batch_op.create_index('ix_assets_hr_email_created', ['hr_email', 'created_at'], unique=False)

    # ==========================================================================
    # 3. REQUEST LIFECYCLE
    # ==========================================================================
    op.create_table('asset_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('asset_name', sa.String(length=255), nullable=False),
        sa.Column('asset_type', sa.String(length=32), nullable=False),
        sa.Column('requester_email', sa.String(length=255), nullable=False),
        sa.Column('requester_name', sa.String(length=120), nullable=False),
        sa.Column('hr_email', sa.String(length=255), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.Column('request_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('approval_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(length=255), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'returned')",
            name='ck_asset_requests_status',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('asset_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_asset_requests_asset_id'), ['asset_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_asset_requests_status'), ['status'], unique=False)
        batch_op.create_index('ix_asset_requests_requester_date', ['requester_email', 'request_date'], unique=False)
        batch_op.create_index('ix_asset_requests_hr_date', ['hr_email', 'request_date'], unique=False)

    op.create_table('assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False),
        sa.Column('asset_name', sa.String(length=255), nullable=False),
        sa.Column('asset_type', sa.String(length=32), nullable=False),
        sa.Column('employee_email', sa.String(length=255), nullable=False),
        sa.Column('employee_name', sa.String(length=120), nullable=False),
        sa.Column('hr_email', sa.String(length=255), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('assignment_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('assigned', 'returned')", name='ck_assignments_status'),
        sa.ForeignKeyConstraint(['request_id'], ['asset_requests.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', name='uq_assignments_request'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('assignments', schema=None) as batch_op:
        batch_op.create_index('ix_assignments_employee_status', ['employee_email', 'status'], unique=False)
        batch_op.create_index('ix_assignments_asset_status', ['asset_id', 'status'], unique=False)


def downgrade():
    op.drop_table('assignments')
    op.drop_table('asset_requests')
    op.drop_table('assets')
    op.drop_table('session_tokens')
    op.drop_table('affiliations')
    op.drop_table('users')
