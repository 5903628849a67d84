"""Payment reservation variants.

jobs.payment_reservation has historically held two shapes:

    - a bare base64 transaction envelope  ->  RawReservation
    - a JSON object {"paymentXDR": ...}   ->  WrappedReservation

decode_reservation() is the only place that knows about both. Everything past
the repository boundary works with the PaymentReservation union and reads
`.payment_xdr`. New rows are always written in the wrapped form.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

WRAPPED_XDR_KEY = "paymentXDR"


@dataclass(frozen=True)
class RawReservation:
    """A reservation stored as the envelope XDR alone."""

    payment_xdr: str

    @property
    def metadata(self) -> dict:
        return {}


@dataclass(frozen=True)
class WrappedReservation:
    """A reservation stored as JSON with the envelope under `paymentXDR`.

    Attributes:
        payment_xdr: Unsigned base64 transaction envelope.
        metadata: Everything else in the object (amount, from, to, memo...).
    """

    payment_xdr: str
    metadata: dict = field(default_factory=dict)


PaymentReservation = RawReservation | WrappedReservation


def decode_reservation(stored: str | None) -> PaymentReservation | None:
    """Decode the stored column value into a single internal representation.

    Returns None for NULL/blank values and for JSON objects without a
    `paymentXDR` entry.
    """
    if stored is None:
        return None
    text = stored.strip()
    if not text:
        return None

    if text.startswith("{"):
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return None
        xdr = payload.get(WRAPPED_XDR_KEY) if isinstance(payload, dict) else None
        if not isinstance(xdr, str) or not xdr:
            return None
        metadata = {k: v for k, v in payload.items() if k != WRAPPED_XDR_KEY}
        return WrappedReservation(payment_xdr=xdr, metadata=metadata)

    # JSON string literal around a raw envelope, e.g. "\"AAAA...\""
    if text.startswith('"'):
        try:
            text = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(text, str) or not text:
            return None

    return RawReservation(payment_xdr=text)


def encode_reservation(reservation: PaymentReservation) -> str:
    """Serialize a reservation for storage (always the wrapped form)."""
    payload = {WRAPPED_XDR_KEY: reservation.payment_xdr, **reservation.metadata}
    return json.dumps(payload, sort_keys=True, default=str)
