"""Post-commit effect pipeline.

After the authoritative status write has committed, the lifecycle engine runs
a list of independent side effects. Each one:

    - runs inside its own SAVEPOINT, so a failed write is rolled back alone;
    - may raise SkipEffect to record that it had nothing to do;
    - never propagates its exception: the failure is logged and recorded.

The caller gets the list of EffectOutcome values back and can report partial
failure without the job transition ever being undone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from freelance_marketplace.domain.enums import EffectName, EffectStatus
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from freelance_marketplace.domain.repositories import MarketplaceStore

logger = get_logger(__name__)


class SkipEffect(Exception):  # noqa: N818 - control-flow signal, not an error
    """Raised by an effect step that has nothing to do."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class EffectOutcome:
    name: EffectName
    status: EffectStatus
    detail: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != EffectStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": str(self.name),
            "status": str(self.status),
            "detail": self.detail,
            "error": self.error,
        }


class PostCommitEffects:
    """Runs fallible steps after commit and collects their outcomes."""

    def __init__(self, store: MarketplaceStore, job_id: str) -> None:
        self._store = store
        self._job_id = job_id
        self.outcomes: list[EffectOutcome] = []

    async def run(
        self,
        name: EffectName,
        step: Callable[[], Awaitable[str | None]],
    ) -> EffectOutcome:
        try:
            async with self._store.savepoint():
                detail = await step()
        except SkipEffect as skip:
            outcome = EffectOutcome(name, EffectStatus.SKIPPED, detail=skip.reason)
        except Exception as exc:
            logger.warning(
                "effect.failed",
                job_id=self._job_id,
                effect=str(name),
                error=str(exc),
                exc_info=True,
            )
            outcome = EffectOutcome(name, EffectStatus.FAILED, error=str(exc))
        else:
            outcome = EffectOutcome(name, EffectStatus.APPLIED, detail=detail)

        self.outcomes.append(outcome)
        return outcome

    async def finish(self) -> list[EffectOutcome]:
        """Commit whatever the effects wrote and return their outcomes.

        If that commit fails, every applied effect is reported as failed.
        """
        try:
            await self._store.commit()
        except Exception as exc:
            logger.error("effect.commit_failed", job_id=self._job_id, error=str(exc))
            await self._store.rollback()
            self.outcomes = [
                EffectOutcome(o.name, EffectStatus.FAILED, detail=o.detail, error=str(exc))
                if o.status == EffectStatus.APPLIED
                else o
                for o in self.outcomes
            ]

        failed = [str(o.name) for o in self.outcomes if not o.ok]
        if failed:
            logger.warning("effect.partial_failure", job_id=self._job_id, failed=failed)
        return list(self.outcomes)
