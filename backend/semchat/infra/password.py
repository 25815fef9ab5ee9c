"""Argon2id credential hashing shared by every store that keeps passwords."""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from semchat.settings import settings

PASSWORD_HASHER = PasswordHasher(
    time_cost=settings.password_time_cost,
    memory_cost=settings.password_memory_kib,
    parallelism=4,
)


def hash_password(password: str) -> str:
    return PASSWORD_HASHER.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """False for a wrong password or an unreadable stored hash."""
    try:
        return PASSWORD_HASHER.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False
