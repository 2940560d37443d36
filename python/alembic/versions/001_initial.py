"""Initial schema - Baseline migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Baseline migration creating every table of the Persona remote store.
It matches database/models.py; create_schema.py builds the same tables
directly from the models for development databases.
For existing databases, use `alembic stamp 001_initial` to mark as applied.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
NOW = sa.text('now()')


def _id() -> sa.Column:
    return sa.Column('id', UUID, primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW)


def _profile_fk() -> sa.Column:
    return sa.Column(
        'person_profile_id', UUID,
        sa.ForeignKey('person_profiles.id', ondelete='CASCADE'),
        nullable=False, index=True
    )


def _submission_fk() -> sa.Column:
    return sa.Column(
        'submission_id', UUID,
        sa.ForeignKey('person_info_submissions.id', ondelete='CASCADE'),
        nullable=False, index=True
    )


def _user_fk(index: bool = False) -> sa.Column:
    return sa.Column(
        'user_id', sa.String(64),
        sa.ForeignKey('profiles.id', ondelete='CASCADE'),
        nullable=False, index=index
    )


def upgrade() -> None:
    """Create initial database schema."""

    # gen_random_uuid() on PostgreSQL < 13
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(320)),
        sa.Column('first_name', sa.String(200)),
        sa.Column('last_name', sa.String(200)),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'search_queries',
        _id(),
        _user_fk(index=True),
        sa.Column('first_name', sa.String(200), nullable=False),
        sa.Column('last_name', sa.String(200), nullable=False),
        sa.Column('age', sa.Integer),
        sa.Column('location', sa.String(500)),
        _created_at(),
    )
    op.create_index('ix_search_queries_user_created', 'search_queries', ['user_id', 'created_at'])

    op.create_table(
        'person_profiles',
        _id(),
        sa.Column('first_name', sa.String(200), nullable=False),
        sa.Column('last_name', sa.String(200), nullable=False),
        sa.Column('age', sa.Integer),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.Column('metadata', postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index('ix_person_profiles_name', 'person_profiles', ['first_name', 'last_name'])

    op.create_table(
        'search_results',
        _id(),
        sa.Column('search_query_id', UUID, sa.ForeignKey('search_queries.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        _profile_fk(),
        sa.Column('confidence_score', sa.Integer, nullable=False),
        _created_at(),
        sa.CheckConstraint('confidence_score >= 0 AND confidence_score <= 100', name='ck_result_score_range'),
    )

    # Category records
    op.create_table(
        'addresses',
        _id(),
        _profile_fk(),
        sa.Column('street', sa.String(500)),
        sa.Column('city', sa.String(200)),
        sa.Column('state', sa.String(100)),
        sa.Column('zip_code', sa.String(20)),
        sa.Column('country', sa.String(100), nullable=False, server_default='USA'),
        sa.Column('is_current', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('start_date', sa.String(50)),
        sa.Column('end_date', sa.String(50)),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )
    op.create_table(
        'phone_numbers',
        _id(),
        _profile_fk(),
        sa.Column('number', sa.String(50)),
        sa.Column('type', sa.String(50), nullable=False, server_default='mobile'),
        sa.Column('is_current', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_verified', sa.String(50)),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )
    op.create_table(
        'social_media',
        _id(),
        _profile_fk(),
        sa.Column('platform', sa.String(100)),
        sa.Column('username', sa.String(200)),
        sa.Column('url', sa.Text),
        sa.Column('last_active', sa.String(50)),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )
    op.create_table(
        'criminal_records',
        _id(),
        _profile_fk(),
        sa.Column('case_number', sa.String(100)),
        sa.Column('charge', sa.Text),
        sa.Column('status', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('record_date', sa.String(50)),
        sa.Column('jurisdiction', sa.String(200)),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )
    op.create_table(
        'relatives',
        _id(),
        _profile_fk(),
        sa.Column('first_name', sa.String(200)),
        sa.Column('last_name', sa.String(200)),
        sa.Column('relationship', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('age', sa.Integer),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )
    op.create_table(
        'property_records',
        _id(),
        _profile_fk(),
        sa.Column('address', sa.String(500)),
        sa.Column('city', sa.String(200)),
        sa.Column('state', sa.String(100)),
        sa.Column('zip_code', sa.String(20)),
        sa.Column('property_type', sa.String(100)),
        sa.Column('assessed_value', sa.Float),
        sa.Column('purchase_price', sa.Float),
        sa.Column('purchase_date', sa.String(50)),
        sa.Column('raw', postgresql.JSONB),
        _created_at(),
    )

    # History & favorites
    op.create_table(
        'search_history',
        _id(),
        _user_fk(),
        sa.Column('search_query_id', UUID, sa.ForeignKey('search_queries.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('searched_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index('ix_search_history_user_time', 'search_history', ['user_id', 'searched_at'])

    op.create_table(
        'favorite_searches',
        _id(),
        _user_fk(),
        sa.Column('search_query_id', UUID, sa.ForeignKey('search_queries.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('label', sa.String(200)),
        sa.Column('favorited_at', sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.UniqueConstraint('user_id', 'search_query_id', name='uq_favorite_user_query'),
    )

    # Submissions
    op.create_table(
        'person_info_submissions',
        _id(),
        _user_fk(index=True),
        sa.Column('person_profile_id', UUID, sa.ForeignKey('person_profiles.id', ondelete='SET NULL'),
                  index=True),
        sa.Column('first_name', sa.String(200), nullable=False),
        sa.Column('last_name', sa.String(200), nullable=False),
        sa.Column('age', sa.Integer),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('reviewer_notes', sa.Text),
        sa.Column('verified_at', sa.DateTime(timezone=True)),
        sa.Column('verified_by', sa.String(64)),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_submission_status'),
    )
    op.create_index('ix_submission_name', 'person_info_submissions', ['first_name', 'last_name'])
    op.create_index('ix_submission_status_created', 'person_info_submissions', ['status', 'created_at'])

    op.create_table(
        'person_info_addresses',
        _id(),
        _submission_fk(),
        sa.Column('street', sa.String(500)),
        sa.Column('city', sa.String(200)),
        sa.Column('state', sa.String(100)),
        sa.Column('zip_code', sa.String(20)),
        sa.Column('country', sa.String(100), nullable=False, server_default='USA'),
        sa.Column('is_current', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('start_date', sa.String(50)),
        sa.Column('end_date', sa.String(50)),
    )
    op.create_table(
        'person_info_phone_numbers',
        _id(),
        _submission_fk(),
        sa.Column('number', sa.String(50), nullable=False),
        sa.Column('type', sa.String(50), nullable=False, server_default='mobile'),
        sa.Column('is_current', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_verified', sa.String(50)),
    )
    op.create_table(
        'person_info_social_media',
        _id(),
        _submission_fk(),
        sa.Column('platform', sa.String(100), nullable=False),
        sa.Column('username', sa.String(200)),
        sa.Column('url', sa.Text),
    )
    op.create_table(
        'person_info_criminal_records',
        _id(),
        _submission_fk(),
        sa.Column('case_number', sa.String(100)),
        sa.Column('charge', sa.Text, nullable=False, server_default=''),
        sa.Column('status', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('record_date', sa.String(50)),
        sa.Column('jurisdiction', sa.String(200)),
    )
    op.create_table(
        'person_info_relatives',
        _id(),
        _submission_fk(),
        sa.Column('first_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(200)),
        sa.Column('relationship', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('age', sa.Integer),
    )
    op.create_table(
        'person_info_past_names',
        _id(),
        _submission_fk(),
        sa.Column('name', sa.String(400), nullable=False),
    )
    op.create_table(
        'person_info_proofs',
        _id(),
        _submission_fk(),
        sa.Column('storage_path', sa.Text, nullable=False),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('content_type', sa.String(200), nullable=False,
                  server_default='application/octet-stream'),
        _created_at(),
    )


def downgrade() -> None:
    """Drop all tables."""
    # Drop tables in reverse order
    op.drop_table('person_info_proofs')
    op.drop_table('person_info_past_names')
    op.drop_table('person_info_relatives')
    op.drop_table('person_info_criminal_records')
    op.drop_table('person_info_social_media')
    op.drop_table('person_info_phone_numbers')
    op.drop_table('person_info_addresses')
    op.drop_table('person_info_submissions')
    op.drop_table('favorite_searches')
    op.drop_table('search_history')
    op.drop_table('property_records')
    op.drop_table('relatives')
    op.drop_table('criminal_records')
    op.drop_table('social_media')
    op.drop_table('phone_numbers')
    op.drop_table('addresses')
    op.drop_table('search_results')
    op.drop_table('person_profiles')
    op.drop_table('search_queries')
    op.drop_table('profiles')
