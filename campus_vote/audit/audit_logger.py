# campus_vote/audit/audit_logger.py

import json
import hashlib
import base64
import logging
import threading
from datetime import timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives import serialization
from flask import current_app

from campus_vote import db
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import AuditLog, utcnow

logger = logging.getLogger(__name__)

# Append-only audit trail stored in the database, hash chained and signed
# with Ed25519. Recording is best effort: it never undoes or fails the
# operation it describes.

ELECTION_CREATED = "election_created"
ELECTION_UPDATED = "election_updated"
ELECTION_DELETED = "election_deleted"
VOTE_CAST = "vote_cast"


def _canonical_time(value):
    # SQLite hands back naive datetimes, PostgreSQL aware ones
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='microseconds')


class AuditLogger:
    _chain_lock = threading.Lock()

    def __init__(self, signing_key_pem=None):
        if signing_key_pem:
            self.signing_key = serialization.load_pem_private_key(signing_key_pem.encode(), password=None)
        else:
            logger.warning("AUDIT_SIGNING_KEY is not set; audit entries are signed with an ephemeral key")
            self.signing_key = Ed25519PrivateKey.generate()

    def get_public_key_pem(self) -> str:
        pem = self.signing_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo)
        return pem.decode()

    @staticmethod
    def _entry_json(sequence, user_id, action, details, created_at, previous_hash):
        entry = {
            "sequence": sequence,
            "user_id": user_id,
            "action": action,
            "details": details,
            "created_at": _canonical_time(created_at),
            "previous_hash": previous_hash,
        }
        return json.dumps(entry, sort_keys=True, default=str)

    def record(self, user_id, action, details=None):
        """Append an entry; returns it, or None when the write failed."""
        try:
            with self._chain_lock:
                last = db.session.execute(
                    db.select(AuditLog).order_by(AuditLog.sequence.desc()).limit(1)
                ).scalar_one_or_none()
                sequence = last.sequence + 1 if last else 1
                previous_hash = last.entry_hash if last else None
                created_at = utcnow()

                entry_json = self._entry_json(sequence, user_id, action, details, created_at, previous_hash)
                entry = AuditLog(
                    sequence=sequence,
                    user_id=user_id,
                    action=action,
                    details=details,
                    created_at=created_at,
                    previous_hash=previous_hash,
                    entry_hash=hashlib.sha256(entry_json.encode()).hexdigest(),
                    signature=base64.b64encode(self.signing_key.sign(entry_json.encode())).decode(),
                )
                db.session.add(entry)
                db.session.commit()
            return entry
        except Exception:
            db.session.rollback()
            logger.exception("Audit log write failed for action %s by %s", action, user_id)
            return None

    def verify_integrity(self, public_key_pem=None):
        public_key = self.signing_key.public_key()
        if public_key_pem:
            public_key = serialization.load_pem_public_key(public_key_pem.encode())

        previous_hash = None
        entries = db.session.execute(db.select(AuditLog).order_by(AuditLog.sequence)).scalars()
        for entry in entries:
            if entry.previous_hash != previous_hash:
                logger.warning("Audit chain broken at sequence %s", entry.sequence)
                return False
            entry_json = self._entry_json(entry.sequence, entry.user_id, entry.action, entry.details,
                                          entry.created_at, entry.previous_hash)
            if hashlib.sha256(entry_json.encode()).hexdigest() != entry.entry_hash:
                logger.warning("Audit entry %s does not match its hash", entry.sequence)
                return False
            try:
                public_key.verify(base64.b64decode(entry.signature), entry_json.encode())
            except (InvalidSignature, ValueError):
                logger.warning("Audit entry %s has an invalid signature", entry.sequence)
                return False
            previous_hash = entry.entry_hash
        return True

    def list_entries(self, principal_id, action=None, limit=100):
        rbac_service.authorize(principal_id, Permission.VIEW_AUDIT_LOGS)
        query = db.select(AuditLog)
        if action:
            query = query.where(AuditLog.action == action)
        query = query.order_by(AuditLog.sequence.desc()).limit(limit)
        return list(db.session.execute(query).scalars())


def get_audit_logger():
    audit = current_app.extensions.get('audit_logger')
    if audit is None:
        audit = AuditLogger(current_app.config.get('AUDIT_SIGNING_KEY'))
        current_app.extensions['audit_logger'] = audit
    return audit
