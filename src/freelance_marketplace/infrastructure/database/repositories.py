"""SQLAlchemy repositories for the marketplace tables.

Repositories encapsulate all SQL queries and provide a clean interface to the
service layer. They accept an AsyncSession and never manage their own
transactions; SqlMarketplaceStore exposes commit() and savepoint() so the
lifecycle engine decides where the boundaries are.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, or_, select, update

from freelance_marketplace.infrastructure.database.orm_models import (
    Conversation,
    Job,
    Message,
    Notification,
    Wallet,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


class SqlJobRepository:
    """Data access for jobs."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, job: Job) -> Job:
        """Insert a new job."""
        self._session.add(job)
        await self._session.flush()
        return job

    async def get_by_id(self, job_id: uuid.UUID) -> Job | None:
        """Fetch a job by its UUID, bypassing any stale identity-map copy."""
        result = await self._session.execute(
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_jobs(self, status: str | None = None) -> list[Job]:
        """Fetch all jobs, newest first, optionally filtered by status."""
        stmt = select(Job).order_by(Job.created_at.desc())
        if status is not None:
            stmt = stmt.where(Job.status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_employer(self, employer_id: str) -> list[Job]:
        """Fetch jobs posted by an employer, newest first."""
        result = await self._session.execute(
            select(Job)
            .where(Job.employer_id == employer_id)
            .order_by(Job.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_employee(self, employee_id: str) -> list[Job]:
        """Fetch jobs claimed by a freelancer, newest first."""
        result = await self._session.execute(
            select(Job)
            .where(Job.employee_id == employee_id)
            .order_by(Job.created_at.desc())
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        job_id: uuid.UUID,
        expected: Iterable[str],
        new_status: str,
        **values: Any,
    ) -> bool:
        """Conditional UPDATE: succeeds only if the row is still in `expected`.

        Only one of N concurrent callers can match the WHERE clause; the others
        see rowcount == 0.
        """
        result = await self._session.execute(
            update(Job)
            .where(Job.id == job_id, Job.status.in_(list(expected)))
            .values(status=new_status, updated_at=datetime.now(UTC), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_fields(self, job_id: uuid.UUID, **values: Any) -> None:
        """Write settlement fields without touching status."""
        await self._session.execute(
            update(Job)
            .where(Job.id == job_id)
            .values(updated_at=datetime.now(UTC), **values)
            .execution_options(synchronize_session=False)
        )

    async def delete_if_open(self, job_id: uuid.UUID, employer_id: str) -> bool:
        """Hard-delete an unclaimed job owned by employer_id."""
        result = await self._session.execute(
            delete(Job)
            .where(
                Job.id == job_id,
                Job.employer_id == employer_id,
                Job.status == "open",
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SqlWalletRepository:
    """Data access for registered wallets (read-only to the lifecycle engine)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, wallet: Wallet) -> Wallet:
        self._session.add(wallet)
        await self._session.flush()
        return wallet

    async def list_for_user(self, user_id: str) -> list[Wallet]:
        """Fetch a user's wallets in registration order."""
        result = await self._session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .order_by(Wallet.created_at.asc())
        )
        return list(result.scalars().all())

    async def delete(self, user_id: str, wallet_id: uuid.UUID) -> bool:
        result = await self._session.execute(
            delete(Wallet).where(Wallet.id == wallet_id, Wallet.user_id == user_id)
        )
        return result.rowcount == 1


class SqlNotificationRepository:
    """Data access for notifications."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, notification: Notification) -> Notification:
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_all_read(self, user_id: str) -> int:
        """Bulk-mark a user's unread notifications. Returns rows changed."""
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlConversationRepository:
    """Data access for conversations and their messages."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_between(self, user_a: str, user_b: str) -> Conversation | None:
        first, second = Conversation.canonical_pair(user_a, user_b)
        result = await self._session.execute(
            select(Conversation).where(
                Conversation.user_a == first,
                Conversation.user_b == second,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, conversation: Conversation) -> Conversation:
        conversation.user_a, conversation.user_b = Conversation.canonical_pair(
            conversation.user_a, conversation.user_b
        )
        self._session.add(conversation)
        await self._session.flush()
        return conversation

    async def get_by_id(self, conversation_id: uuid.UUID) -> Conversation | None:
        result = await self._session.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        result = await self._session.execute(
            select(Conversation)
            .where(or_(Conversation.user_a == user_id, Conversation.user_b == user_id))
            .order_by(Conversation.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_message(self, message: Message) -> Message:
        self._session.add(message)
        await self._session.flush()
        return message

    async def list_messages(self, conversation_id: uuid.UUID) -> list[Message]:
        result = await self._session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())


class SqlMarketplaceStore:
    """MarketplaceStore backed by one AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.jobs = SqlJobRepository(session)
        self.wallets = SqlWalletRepository(session)
        self.notifications = SqlNotificationRepository(session)
        self.conversations = SqlConversationRepository(session)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Run a block inside SAVEPOINT; an exception rolls back only the block."""
        async with self._session.begin_nested():
            yield
