# campus_vote/encryption/password_hashing.py

import re
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError, HashingError

from campus_vote.errors import DependencyFailure, ValidationError

# Account passwords are stored as Argon2id hashes

MIN_PASSWORD_LENGTH = 8


class PasswordHashingService:
    def __init__(self, time_cost=3, memory_cost=65536, parallelism=4):
        self.ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
        )

    def hash_password(self, password: str) -> str:
        if not self.is_strong_password(password):
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters and mix upper case, "
                "lower case, digits or symbols."
            )
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise DependencyFailure() from e

    def verify_password(self, password: str, hash_value: str) -> bool:
        if not isinstance(password, str) or not hash_value:
            return False
        try:
            return self.ph.verify(hash_value, password)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, hash_value: str) -> bool:
        return self.ph.check_needs_rehash(hash_value)

    def is_strong_password(self, password) -> bool:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            return False
        has_upper = bool(re.search(r'[A-Z]', password))
        has_lower = bool(re.search(r'[a-z]', password))
        has_digit = bool(re.search(r'\d', password))
        has_special = bool(re.search(r'[^A-Za-z0-9]', password))
        return sum([has_upper, has_lower, has_digit, has_special]) >= 3
