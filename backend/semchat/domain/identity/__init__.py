"""Identity domain exports."""

from .models import User
from .repo import InMemoryUserStore, PostgresUserStore, UserStore
from .service import IdentityService

__all__ = [
	"IdentityService",
	"InMemoryUserStore",
	"PostgresUserStore",
	"User",
	"UserStore",
]
