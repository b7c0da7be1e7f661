"""User repository for database operations."""

import hashlib
import secrets
from datetime import datetime
from typing import Any

from lapublica_backup.db.database import Database, utc_now
from lapublica_backup.db.repositories.document_repository import DocumentRepository
from lapublica_backup.models.record import StoredRecord

USER_COLUMNS = ("email", "username", "password_hash", "role")


def hash_password(password: str) -> str:
    """Salted PBKDF2 hash in ``pbkdf2_sha256$iterations$salt$digest`` form."""
    iterations = 120_000
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def random_password() -> str:
    """Throwaway password for accounts created by an import."""
    return secrets.token_urlsafe(12)


class UserRepository(DocumentRepository):
    """Repository for platform accounts."""

    def __init__(self, db: Database) -> None:
        """Initialize repository.

        Args:
            db: Database instance
        """
        super().__init__(db, "users", USER_COLUMNS)

    async def create_user(
        self,
        email: str,
        username: str | None,
        document: dict[str, Any],
        role: str = "user",
        password: str | None = None,
        created_at: datetime | None = None,
    ) -> str:
        """Create an account.

        Args:
            email: Email address
            username: Username
            document: Profile fields
            role: Platform role
            password: Plain password, a random one when omitted
            created_at: Original creation time to preserve

        Returns:
            New user ID
        """
        return await self.insert(
            {
                "email": email,
                "username": username,
                "password_hash": hash_password(password or random_password()),
                "role": role,
            },
            document,
            created_at=created_at,
        )

    async def update_profile(
        self,
        user_id: str,
        fields: dict[str, Any],
        document: dict[str, Any],
    ) -> None:
        """Update account fields, leaving the password untouched.

        Args:
            user_id: User ID
            fields: Columns to change, a subset of email, username and role
            document: Full profile document
        """
        if "password_hash" in fields:
            raise ValueError("Passwords are not updated through profiles")
        await self.update(user_id, fields, document)

    async def find_by_email(self, email: str) -> StoredRecord | None:
        """Find user by email, case-insensitively."""
        return await self.find_one(["email = ?"], [email.strip()])

    async def find_by_username(self, username: str) -> StoredRecord | None:
        """Find user by username, case-insensitively."""
        return await self.find_one(["username = ?"], [username.strip()])

    async def find_by_email_or_username(
        self, email: str | None, username: str | None
    ) -> StoredRecord | None:
        """Find a user whose email or username matches.

        Args:
            email: Email address
            username: Username

        Returns:
            User record or None if neither matches
        """
        if email:
            user = await self.find_by_email(email)
            if user:
                return user
        if username:
            return await self.find_by_username(username)
        return None
