# campus_vote/database/models.py

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import event

from campus_vote import db


def _uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Role(Enum):
    ADMIN = "admin"
    STUDENT = "student"


class ElectionStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class Account(db.Model):
    """Sign-in identity. Its id is the principal id used everywhere else."""
    __tablename__ = 'accounts'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(254), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    profile = db.relationship('Profile', back_populates='account', uselist=False)

    def __repr__(self):
        return f'<Account {self.email}>'


class Profile(db.Model):
    __tablename__ = 'profiles'
    id = db.Column(db.String(36), db.ForeignKey('accounts.id', ondelete='CASCADE'), primary_key=True)
    full_name = db.Column(db.Text, nullable=False, default='')
    student_id = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    account = db.relationship('Account', back_populates='profile')
    roles = db.relationship('UserRole', back_populates='profile', lazy=True,
                            cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'student_id': self.student_id,
            'roles': sorted(r.role.value for r in self.roles),
            'created_at': _iso(self.created_at),
        }


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.Enum(Role, name='app_role', values_callable=lambda e: [m.value for m in e]),
                     nullable=False)

    profile = db.relationship('Profile', back_populates='roles')

    __table_args__ = (db.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),)


class Election(db.Model):
    __tablename__ = 'elections'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.Enum(ElectionStatus, name='election_status',
                               values_callable=lambda e: [m.value for m in e]),
                       nullable=False, default=ElectionStatus.DRAFT)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    candidates = db.relationship('Candidate', back_populates='election', lazy=True,
                                 cascade='all, delete-orphan', order_by='Candidate.name')
    votes = db.relationship('Vote', back_populates='election', lazy=True,
                            cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'is_anonymous': self.is_anonymous,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Election {self.title!r} {self.status.value}>'


class Candidate(db.Model):
    __tablename__ = 'candidates'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    name = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    election = db.relationship('Election', back_populates='candidates')
    # Ballots are never removed with a candidate; the foreign key refuses it
    votes = db.relationship('Vote', back_populates='candidate', lazy=True, passive_deletes='all')

    def to_dict(self):
        return {
            'id': self.id,
            'election_id': self.election_id,
            'name': self.name,
            'description': self.description,
            'image_url': self.image_url,
            'created_at': _iso(self.created_at),
        }


class Vote(db.Model):
    __tablename__ = 'votes'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    election_id = db.Column(db.String(36), db.ForeignKey('elections.id', ondelete='CASCADE'),
                            nullable=False)
    candidate_id = db.Column(db.String(36), db.ForeignKey('candidates.id'),
                             nullable=False, index=True)
    voter_id = db.Column(db.String(36), db.ForeignKey('accounts.id'), nullable=False)
    vote_token = db.Column(db.String(36), nullable=False, default=_uuid)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    election = db.relationship('Election', back_populates='votes')
    candidate = db.relationship('Candidate', back_populates='votes')

    # One ballot per voter per election, enforced by the database
    __table_args__ = (db.UniqueConstraint('election_id', 'voter_id', name='uq_votes_election_voter'),)

    def to_dict(self, include_voter=True):
        return {
            'id': self.id,
            'election_id': self.election_id,
            'candidate_id': self.candidate_id,
            'voter_id': self.voter_id if include_voter else None,
            'vote_token': self.vote_token,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Vote {self.id} in Election {self.election_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    sequence = db.Column(db.Integer, unique=True, nullable=False)
    # Plain column: entries outlive the accounts they mention
    user_id = db.Column(db.String(36), nullable=True)
    action = db.Column(db.Text, nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    previous_hash = db.Column(db.String(64), nullable=True)
    entry_hash = db.Column(db.String(64), nullable=False)
    signature = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'sequence': self.sequence,
            'user_id': self.user_id,
            'action': self.action,
            'details': self.details,
            'created_at': _iso(self.created_at),
            'previous_hash': self.previous_hash,
            'entry_hash': self.entry_hash,
        }


def _iso(value):
    return value.isoformat() if value else None


def enable_sqlite_foreign_keys(engine):
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""
    if engine.dialect.name != 'sqlite':
        return

    @event.listens_for(engine, 'connect')
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()
