# campus_vote/authentication/identity.py

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from campus_vote import db
from campus_vote.authentication.rbac import Permission, rbac_service
from campus_vote.database.models import Account, Profile, Role, UserRole
from campus_vote.encryption.password_hashing import PasswordHashingService
from campus_vote.errors import AuthenticationError, DependencyFailure, NotFound, ValidationError
from campus_vote.security.input_validator import validator

logger = logging.getLogger(__name__)


class IdentityService:
    """Accounts, sign-in and the post-authentication principal bootstrap."""

    def __init__(self, password_service=None):
        self.password_service = password_service or PasswordHashingService()

    def register(self, data):
        fields = validator.validate_registration(data)
        if self.find_account(fields['email']) is not None:
            raise ValidationError("An account with this email already exists.")

        account = Account(
            email=fields['email'],
            password_hash=self.password_service.hash_password(fields['password']),
        )
        try:
            db.session.add(account)
            db.session.flush()
            self._add_principal(account.id, fields['full_name'], fields['student_id'])
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError("An account with this email or student ID already exists.")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Account registration failed: %s", e)
            raise DependencyFailure() from e
        logger.info("Registered principal %s", account.id)
        return account

    def authenticate(self, email, password):
        account = self.find_account(email) if validator.validate_email(email) else None
        if account is None or not self.password_service.verify_password(password, account.password_hash):
            logger.warning("Failed sign-in for %r", email)
            raise AuthenticationError()

        if self.password_service.needs_rehash(account.password_hash):
            account.password_hash = self.password_service.ph.hash(password)
            db.session.commit()

        self.bootstrap_principal(account.id)
        return account

    def find_account(self, email):
        if not isinstance(email, str):
            return None
        return db.session.execute(
            db.select(Account).where(Account.email == email.strip().lower())
        ).scalar_one_or_none()

    def _add_principal(self, principal_id, full_name, student_id):
        db.session.add(Profile(id=principal_id, full_name=full_name or '', student_id=student_id or None))
        db.session.add(UserRole(user_id=principal_id, role=Role.STUDENT))

    def bootstrap_principal(self, principal_id, full_name='', student_id=None):
        """Create the profile and default student role for a principal.

        Both rows are written in one transaction. Running it again for a
        principal that already has a profile changes nothing, so it is safe
        to call after every sign-in.
        """
        profile = db.session.get(Profile, principal_id)
        if profile is not None:
            return profile
        try:
            self._add_principal(principal_id, full_name, student_id)
            db.session.commit()
        except IntegrityError:
            # A concurrent sign-in bootstrapped the same principal first
            db.session.rollback()
            profile = db.session.get(Profile, principal_id)
            if profile is None:
                raise ValidationError("This student ID is already registered.")
            return profile
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Principal bootstrap failed for %s: %s", principal_id, e)
            raise DependencyFailure() from e
        return db.session.get(Profile, principal_id)

    def get_profile(self, principal_id):
        profile = db.session.get(Profile, principal_id)
        if profile is None:
            raise NotFound("Profile not found.")
        return profile

    def list_principals(self, principal_id):
        rbac_service.authorize(principal_id, Permission.VIEW_ROLES)
        return list(db.session.execute(db.select(Profile).order_by(Profile.created_at)).scalars())

    # Role grants are an operator action (see the grant-admin CLI command)
    def grant_role(self, email, role):
        account = self.find_account(email)
        if account is None:
            raise NotFound("No account with this email.")
        self.bootstrap_principal(account.id)
        if rbac_service.has_role(account.id, role):
            return False
        db.session.add(UserRole(user_id=account.id, role=role))
        db.session.commit()
        logger.info("Granted %s to %s", role.value, account.id)
        return True

    def revoke_role(self, email, role):
        account = self.find_account(email)
        if account is None:
            raise NotFound("No account with this email.")
        removed = db.session.execute(
            db.delete(UserRole).where(UserRole.user_id == account.id, UserRole.role == role)
        ).rowcount
        db.session.commit()
        if removed:
            logger.info("Revoked %s from %s", role.value, account.id)
        return bool(removed)


identity_service = IdentityService()
