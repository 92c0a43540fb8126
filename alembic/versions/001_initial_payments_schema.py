"""Initial payments schema: catalog, purchases, bundle sales and payouts.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('fname', sa.String(100), nullable=False),
        sa.Column('lname', sa.String(100), nullable=False, server_default=''),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('user_role', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_user_role', 'users', ['user_role'])

    op.create_table(
        'subjects',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('bundle_price', sa.Integer(), nullable=True),
        sa.Column('bundle_price_updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'scholar_profiles',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False, unique=True),
        sa.Column('university', sa.String(255), nullable=True),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stripe_account_id', sa.String(255), nullable=True),
        sa.Column('stripe_onboarding_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stripe_details_submitted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_scholar_profile_approved', 'scholar_profiles', ['approved'])

    op.create_table(
        'videos',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_free', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('scholar_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('subject_id', sa.String(36), sa.ForeignKey('subjects.uuid'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_video_scholar_user_id', 'videos', ['scholar_user_id'])
    op.create_index('idx_video_subject_id', 'videos', ['subject_id'])

    op.create_table(
        'purchases',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('buyer_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('subject_id', sa.String(36), sa.ForeignKey('subjects.uuid'), nullable=False),
        sa.Column('scholar_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='eur'),
        sa.Column('transaction_ref', sa.String(255), nullable=True, unique=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('renewed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('buyer_user_id', 'subject_id', 'scholar_user_id', name='uq_purchase_buyer_subject_scholar'),
    )
    op.create_index('idx_purchase_scholar_subject', 'purchases', ['scholar_user_id', 'subject_id'])

    op.create_table(
        'video_purchases',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('buyer_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('video_id', sa.String(36), sa.ForeignKey('videos.uuid'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='eur'),
        sa.Column('transaction_ref', sa.String(255), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_video_purchase_buyer', 'video_purchases', ['buyer_user_id'])
    op.create_index('idx_video_purchase_video', 'video_purchases', ['video_id'])

    op.create_table(
        'bundle_sales',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('checkout_session_id', sa.String(255), nullable=True, unique=True),
        sa.Column('payment_ref', sa.String(255), nullable=True, unique=True),
        sa.Column('buyer_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('subject_id', sa.String(36), sa.ForeignKey('subjects.uuid'), nullable=False),
        sa.Column('scholar_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='eur'),
        sa.Column('platform_fee_percent', sa.Integer(), nullable=False),
        sa.Column('platform_share', sa.Integer(), nullable=False),
        sa.Column('creator_share', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='initiated'),
        sa.Column('transfer_ref', sa.String(255), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('settled_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_bundle_sale_scholar_subject', 'bundle_sales', ['scholar_user_id', 'subject_id'])
    op.create_index('idx_bundle_sale_status', 'bundle_sales', ['status'])

    op.create_table(
        'scholar_payouts',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('scholar_user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('transfer_ref', sa.String(255), nullable=True),
        sa.Column('source_payment_ref', sa.String(255), nullable=True, unique=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='eur'),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_payout_scholar_user_id', 'scholar_payouts', ['scholar_user_id'])
    op.create_index('idx_payout_status', 'scholar_payouts', ['status'])


def downgrade():
    op.drop_index('idx_payout_status', table_name='scholar_payouts')
    op.drop_index('idx_payout_scholar_user_id', table_name='scholar_payouts')
    op.drop_table('scholar_payouts')
    op.drop_index('idx_bundle_sale_status', table_name='bundle_sales')
    op.drop_index('idx_bundle_sale_scholar_subject', table_name='bundle_sales')
    op.drop_table('bundle_sales')
    op.drop_index('idx_video_purchase_video', table_name='video_purchases')
    op.drop_index('idx_video_purchase_buyer', table_name='video_purchases')
    op.drop_table('video_purchases')
    op.drop_index('idx_purchase_scholar_subject', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('idx_video_subject_id', table_name='videos')
    op.drop_index('idx_video_scholar_user_id', table_name='videos')
    op.drop_table('videos')
    op.drop_index('idx_scholar_profile_approved', table_name='scholar_profiles')
    op.drop_table('scholar_profiles')
    op.drop_table('subjects')
    op.drop_index('idx_user_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
