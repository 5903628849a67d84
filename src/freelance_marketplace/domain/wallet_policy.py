"""Wallet selection policy.

A user may register any number of wallets, but settlement needs exactly one
address per party. The policy below is the single place that decides which
one; swap it out when multi-wallet payouts are supported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


class WalletLike(Protocol):
    address: str
    created_at: datetime


W = TypeVar("W", bound=WalletLike)


def primary_wallet(wallets: Iterable[W]) -> W | None:
    """Return the oldest registered wallet, or None when the user has none."""
    ordered = sorted(wallets, key=lambda w: w.created_at)
    return ordered[0] if ordered else None
