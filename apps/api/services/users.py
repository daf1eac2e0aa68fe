from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from apps.api.tickets.models import UserSummary
from apps.api.tickets.repository import user_summary_from_row
from apps.api.tickets.state import Role
from packages.db.models import UserTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SampleUser:
    email: str
    first_name: str
    last_name: str
    role: Role
    api_token: str


# One account per support tier, usable with the bearer tokens below in development.
SAMPLE_USERS: tuple[SampleUser, ...] = (
    SampleUser("agent@helpdesk.com", "Help", "Desk", Role.L1_AGENT, "agent-token"),
    SampleUser("tech@helpdesk.com", "Tech", "Support", Role.L2_SUPPORT, "tech-token"),
    SampleUser("admin@helpdesk.com", "Advanced", "Support", Role.L3_SUPPORT, "admin-token"),
)


class UserRepository:
    """Lookup of support staff accounts; tokens stay inside this class."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_token(self, token: str) -> UserSummary | None:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).where(UserTable.api_token == token))
            row = result.scalars().first()
        return user_summary_from_row(row) if row is not None else None

    async def get_by_email(self, email: str) -> UserSummary | None:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).where(UserTable.email == email))
            row = result.scalars().first()
        return user_summary_from_row(row) if row is not None else None

    async def create_user(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        role: Role,
        api_token: str | None = None,
    ) -> UserSummary:
        row = UserTable(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            api_token=api_token,
        )
        summary = user_summary_from_row(row)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(row)
        return summary

    async def seed_sample_users(self) -> list[UserSummary]:
        """Create the sample accounts that do not exist yet."""

        created: list[UserSummary] = []
        for sample in SAMPLE_USERS:
            if await self.get_by_email(sample.email) is not None:
                continue
            created.append(
                await self.create_user(
                    email=sample.email,
                    first_name=sample.first_name,
                    last_name=sample.last_name,
                    role=sample.role,
                    api_token=sample.api_token,
                )
            )
            logger.info("Seeded %s user %s", sample.role.value, sample.email)
        return created
