"""Repository protocols consumed by the lifecycle engine.

These are Protocols (structural subtyping) so the SQLAlchemy repositories in
infrastructure/database/ and the in-memory fakes used by the test suite can
be swapped freely. The engine never touches a session directly.

Every method that changes a job's status is conditional: it names the
statuses the row is expected to be in and reports whether the write happened.
That compare-and-set is what makes concurrent claims safe.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from contextlib import AbstractAsyncContextManager

    from freelance_marketplace.infrastructure.database.orm_models import (
        Conversation,
        Job,
        Message,
        Notification,
        Wallet,
    )


@runtime_checkable
class JobRepository(Protocol):
    async def create(self, job: Job) -> Job: ...

    async def get_by_id(self, job_id: uuid.UUID) -> Job | None: ...

    async def list_jobs(self, status: str | None = None) -> list[Job]: ...

    async def list_by_employer(self, employer_id: str) -> list[Job]: ...

    async def list_by_employee(self, employee_id: str) -> list[Job]: ...

    async def compare_and_set_status(
        self,
        job_id: uuid.UUID,
        expected: Iterable[str],
        new_status: str,
        **values: Any,
    ) -> bool:
        """Move the job to new_status only if it is still in one of `expected`.

        Extra keyword values are written in the same statement.
        Returns True when exactly one row changed.
        """
        ...

    async def update_fields(self, job_id: uuid.UUID, **values: Any) -> None:
        """Write non-status fields (escrow_id, payment_reservation)."""
        ...

    async def delete_if_open(self, job_id: uuid.UUID, employer_id: str) -> bool: ...


@runtime_checkable
class WalletRepository(Protocol):
    async def create(self, wallet: Wallet) -> Wallet: ...

    async def list_for_user(self, user_id: str) -> list[Wallet]: ...

    async def delete(self, user_id: str, wallet_id: uuid.UUID) -> bool: ...


@runtime_checkable
class NotificationRepository(Protocol):
    async def create(self, notification: Notification) -> Notification: ...

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> list[Notification]: ...

    async def mark_all_read(self, user_id: str) -> int: ...


@runtime_checkable
class ConversationRepository(Protocol):
    async def get_between(self, user_a: str, user_b: str) -> Conversation | None: ...

    async def create(self, conversation: Conversation) -> Conversation: ...

    async def get_by_id(self, conversation_id: uuid.UUID) -> Conversation | None: ...

    async def list_for_user(self, user_id: str) -> list[Conversation]: ...

    async def add_message(self, message: Message) -> Message: ...

    async def list_messages(self, conversation_id: uuid.UUID) -> list[Message]: ...


@runtime_checkable
class MarketplaceStore(Protocol):
    """Everything the engine persists, plus transaction control.

    commit() makes the authoritative transition durable before any side
    effect runs. savepoint() isolates one side effect so its failure cannot
    poison the surrounding transaction.
    """

    jobs: JobRepository
    wallets: WalletRepository
    notifications: NotificationRepository
    conversations: ConversationRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def savepoint(self) -> AbstractAsyncContextManager[Any]: ...
