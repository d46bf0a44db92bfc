"""
TRIALBYTE - Password Handler
============================
bcrypt password hashing for user accounts.
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class PasswordHandler:
    """Secure password hashing and verification."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds  # bcrypt work factor

    def hash_password(self, password: str) -> str:
        """
        Hash a password securely.

        Returns:
            Hashed password string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches
        """
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False
