"""initial schema: accounts, profiles, roles, elections, candidates, votes, audit log

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-17 14:04:42.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

app_role = sa.Enum('admin', 'student', name='app_role')
election_status = sa.Enum('draft', 'active', 'closed', name='election_status')


def upgrade():
    op.create_table(
        'accounts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=254), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), sa.ForeignKey('accounts.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('student_id', sa.String(length=64), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', app_role, nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )
    op.create_table(
        'elections',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', election_status, nullable=False),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('accounts.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'candidates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('election_id', sa.String(length=36), sa.ForeignKey('elections.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_candidates_election_id', 'candidates', ['election_id'])
    op.create_table(
        'votes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('election_id', sa.String(length=36), sa.ForeignKey('elections.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('candidate_id', sa.String(length=36), sa.ForeignKey('candidates.id'),
                  nullable=False),
        sa.Column('voter_id', sa.String(length=36), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('vote_token', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('election_id', 'voter_id', name='uq_votes_election_voter'),
    )
    op.create_index('ix_votes_candidate_id', 'votes', ['candidate_id'])
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('sequence', sa.Integer(), nullable=False, unique=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('previous_hash', sa.String(length=64), nullable=True),
        sa.Column('entry_hash', sa.String(length=64), nullable=False),
        sa.Column('signature', sa.Text(), nullable=False),
    )


def downgrade():
    op.drop_table('audit_logs')
    op.drop_index('ix_votes_candidate_id', table_name='votes')
    op.drop_table('votes')
    op.drop_index('ix_candidates_election_id', table_name='candidates')
    op.drop_table('candidates')
    op.drop_table('elections')
    op.drop_table('user_roles')
    op.drop_table('profiles')
    op.drop_table('accounts')
    election_status.drop(op.get_bind(), checkfirst=True)
    app_role.drop(op.get_bind(), checkfirst=True)
