"""Create establishments, reviews and review quota tables

Revision ID: 0001_create_review_tables
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_review_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    establishment_status = sa.Enum(
        'draft', 'pending', 'active', 'suspended',
        name='establishment_status'
    )

    op.create_table(
        'establishments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('partner_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', establishment_status, nullable=False,
                  server_default='draft'),
        sa.Column('review_count', sa.Integer(), nullable=False,
                  server_default='0'),
        sa.Column('average_rating', sa.Float(), nullable=False,
                  server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_establishments_partner_id', 'establishments', ['partner_id'])
    op.create_index('ix_establishments_status', 'establishments', ['status'])
    op.create_index('idx_establishments_status_rating', 'establishments',
                    ['status', 'average_rating'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('author_id', sa.String(64), nullable=False),
        sa.Column('establishment_id', sa.Uuid(),
                  sa.ForeignKey('establishments.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_edited', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False,
                  server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('partner_response', sa.Text(), nullable=True),
        sa.Column('partner_responded_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.now()),
        sa.CheckConstraint('rating >= 1 AND rating <= 5',
                           name='ck_reviews_rating_range'),
    )
    op.create_index('ix_reviews_author_id', 'reviews', ['author_id'])
    op.create_index('ix_reviews_establishment_id', 'reviews', ['establishment_id'])
    op.create_index('idx_reviews_establishment_created', 'reviews',
                    ['establishment_id', 'is_active', 'created_at'])
    op.create_index('idx_reviews_establishment_rating', 'reviews',
                    ['establishment_id', 'is_active', 'rating'])

    # One active review per author and establishment; deleted reviews do not count
    op.create_index(
        'uq_reviews_author_establishment_active',
        'reviews',
        ['author_id', 'establishment_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active = 1'),
    )

    op.create_table(
        'review_quota_counters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('bucket_date', sa.Date(), nullable=False),
        sa.Column('consumed', sa.Integer(), nullable=False,
                  server_default='0'),
        sa.UniqueConstraint('user_id', 'bucket_date',
                            name='uq_review_quota_user_day'),
        sa.CheckConstraint('consumed >= 0', name='ck_review_quota_consumed'),
    )


def downgrade():
    op.drop_table('review_quota_counters')
    op.drop_index('uq_reviews_author_establishment_active', table_name='reviews')
    op.drop_index('idx_reviews_establishment_rating', table_name='reviews')
    op.drop_index('idx_reviews_establishment_created', table_name='reviews')
    op.drop_index('ix_reviews_establishment_id', table_name='reviews')
    op.drop_index('ix_reviews_author_id', table_name='reviews')
    op.drop_table('reviews')
    op.drop_index('idx_establishments_status_rating', table_name='establishments')
    op.drop_index('ix_establishments_status', table_name='establishments')
    op.drop_index('ix_establishments_partner_id', table_name='establishments')
    op.drop_table('establishments')
    sa.Enum(name='establishment_status').drop(op.get_bind(), checkfirst=True)
