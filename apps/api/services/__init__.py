"""Service layer exports."""

from .users import SAMPLE_USERS, SampleUser, UserRepository

__all__ = [
    "SAMPLE_USERS",
    "SampleUser",
    "UserRepository",
]
