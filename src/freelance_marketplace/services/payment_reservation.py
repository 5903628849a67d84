"""Payment Reservation Builder — unsigned Stellar payments for job settlement.

Builds a payment from the employer's account to the employee's account in
the job's currency: native XLM, or USDC as a credit asset from the
configured issuer.

    amount   -> stroops (x 10,000,000, rounded down)
    sequence -> Horizon GET /accounts/{employer}
    memo     -> "Payment for job: <id>", cut to 28 bytes
    timeout  -> payment_timeout_seconds (default 300 s)

The envelope is never signed here. It is handed to the employer's wallet
through the signing gateway.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import TYPE_CHECKING

from stellar_sdk import Account, Asset, TransactionBuilder, TransactionEnvelope

from freelance_marketplace.config import get_settings
from freelance_marketplace.domain.reservation import WrappedReservation
from freelance_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from freelance_marketplace.domain.reservation import PaymentReservation
    from freelance_marketplace.infrastructure.stellar.horizon import HorizonClient

logger = get_logger(__name__)

STROOPS_PER_UNIT = 10_000_000
MAX_MEMO_BYTES = 28
NATIVE_CURRENCY = "XLM"
USDC_CURRENCY = "USDC"

# Largest amount a payment operation can carry (int64 stroops).
MAX_AMOUNT = Decimal("922337203685.4775807")


def to_stroops(amount: Decimal | str | int | float) -> int:
    """Convert a decimal amount to stroops, rounding down.

    Raises:
        ValueError: If the amount is not a positive number of at least one stroop.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    stroops = int((value * STROOPS_PER_UNIT).to_integral_value(rounding=ROUND_DOWN))
    if stroops <= 0:
        raise ValueError(f"Amount must be at least one stroop: {amount!r}")
    if stroops > MAX_AMOUNT * STROOPS_PER_UNIT:
        raise ValueError(f"Amount exceeds the Stellar maximum of {MAX_AMOUNT}: {amount!r}")
    return stroops


def stroops_to_amount(stroops: int) -> str:
    """Render stroops as a 7-decimal amount string ("50.0000000")."""
    return format(Decimal(stroops).scaleb(-7).quantize(Decimal("0.0000001")), "f")


def payment_memo(job_id: str) -> str:
    """Build the text memo, truncated to 28 bytes without splitting a character."""
    memo = f"Payment for job: {job_id}"
    return memo.encode("utf-8")[:MAX_MEMO_BYTES].decode("utf-8", errors="ignore")


def settlement_asset(currency: str, usdc_issuer: str | None) -> Asset:
    """Map a job currency to the Stellar asset its payment is made in.

    Raises:
        ValueError: The currency cannot be settled (unknown code, or USDC
            without a configured issuer).
    """
    code = (currency or "").strip().upper()
    if code == NATIVE_CURRENCY:
        return Asset.native()
    if code == USDC_CURRENCY and usdc_issuer:
        return Asset(USDC_CURRENCY, usdc_issuer)
    raise ValueError(f"Payments in '{currency}' cannot be settled on Stellar")


def asset_label(asset: Asset) -> str:
    """Return "XLM" for the native asset, "CODE:ISSUER" otherwise."""
    return NATIVE_CURRENCY if asset.is_native() else f"{asset.code}:{asset.issuer}"


@dataclass(frozen=True)
class PaymentArtifact:
    """An unsigned payment envelope plus what the client needs to display it."""

    xdr: str
    job_id: str
    amount: str
    source: str
    destination: str
    network: str
    memo: str
    sequence: int
    max_time: int
    asset: str = NATIVE_CURRENCY

    def to_reservation(self) -> WrappedReservation:
        return WrappedReservation(
            payment_xdr=self.xdr,
            metadata={
                "jobId": self.job_id,
                "amount": self.amount,
                "from": self.source,
                "to": self.destination,
                "asset": self.asset,
                "network": self.network,
                "memo": self.memo,
                "sequence": self.sequence,
                "maxTime": self.max_time,
            },
        )


class PaymentReservationBuilder:
    """Builds, checks and refreshes unsigned payment envelopes."""

    def __init__(
        self,
        horizon: HorizonClient,
        network_passphrase: str | None = None,
        network_name: str | None = None,
        base_fee: int | None = None,
        timeout_seconds: int | None = None,
        usdc_issuer: str | None = None,
    ) -> None:
        settings = get_settings()
        self._horizon = horizon
        self._passphrase = network_passphrase or settings.stellar_network_passphrase
        self._network_name = network_name or settings.stellar_network_name
        self._base_fee = base_fee or settings.stellar_base_fee
        self._timeout = timeout_seconds or settings.payment_timeout_seconds
        self._usdc_issuer = usdc_issuer if usdc_issuer is not None else settings.usdc_asset_issuer

    @property
    def network_name(self) -> str:
        return self._network_name

    def asset_for(self, currency: str) -> Asset:
        """The asset a job priced in `currency` is paid in (ValueError if none)."""
        return settlement_asset(currency, self._usdc_issuer)

    async def build(
        self,
        job_id: str,
        source: str,
        destination: str,
        amount: Decimal | str,
        currency: str = NATIVE_CURRENCY,
    ) -> PaymentArtifact:
        """Build a fresh unsigned payment from the source account's next sequence.

        Raises:
            ValueError: Bad amount, address or currency.
            HorizonError: Sequence lookup failed.
        """
        stroops = to_stroops(amount)
        asset = self.asset_for(currency)
        current_sequence = await self._horizon.load_sequence(source)
        memo = payment_memo(job_id)

        envelope = (
            TransactionBuilder(
                source_account=Account(source, current_sequence),
                network_passphrase=self._passphrase,
                base_fee=self._base_fee,
            )
            .append_payment_op(
                destination=destination,
                asset=asset,
                amount=stroops_to_amount(stroops),
            )
            .add_text_memo(memo)
            .set_timeout(self._timeout)
            .build()
        )

        time_bounds = envelope.transaction.preconditions.time_bounds
        artifact = PaymentArtifact(
            xdr=envelope.to_xdr(),
            job_id=job_id,
            amount=stroops_to_amount(stroops),
            source=source,
            destination=destination,
            network=self._network_name,
            memo=memo,
            sequence=envelope.transaction.sequence,
            max_time=time_bounds.max_time if time_bounds else 0,
            asset=asset_label(asset),
        )
        logger.info(
            "payment.reservation_built",
            job_id=job_id,
            amount=artifact.amount,
            asset=artifact.asset,
            sequence=artifact.sequence,
        )
        return artifact

    async def is_stale(
        self,
        reservation: PaymentReservation,
        source: str,
        destination: str,
        now: int | None = None,
        currency: str | None = None,
    ) -> bool:
        """True when a stored envelope can no longer be submitted as-is.

        Stale means: unreadable, built for different parties or (when
        `currency` is given) a different asset, expired time bounds, or a
        sequence number other than current + 1.
        """
        try:
            envelope = TransactionEnvelope.from_xdr(reservation.payment_xdr, self._passphrase)
            tx = envelope.transaction
            payment = tx.operations[0]
            tx_source = tx.source.account_id
            tx_destination = payment.destination.account_id
            tx_asset = payment.asset
        except Exception as exc:
            logger.info("payment.reservation_unreadable", error=str(exc))
            return True

        if tx_source != source or tx_destination != destination:
            return True
        if currency is not None and tx_asset != self.asset_for(currency):
            return True

        time_bounds = tx.preconditions.time_bounds if tx.preconditions else None
        now = int(time.time()) if now is None else now
        if time_bounds is not None and time_bounds.max_time and time_bounds.max_time <= now:
            return True

        current_sequence = await self._horizon.load_sequence(source)
        return tx.sequence != current_sequence + 1

    async def reuse_or_build(
        self,
        reservation: PaymentReservation | None,
        job_id: str,
        source: str,
        destination: str,
        amount: Decimal | str,
        currency: str = NATIVE_CURRENCY,
    ) -> PaymentArtifact:
        """Return the stored reservation when still valid, else build a new one."""
        if reservation is not None and not await self.is_stale(
            reservation, source, destination, currency=currency
        ):
            logger.info("payment.reservation_reused", job_id=job_id)
            tx = TransactionEnvelope.from_xdr(reservation.payment_xdr, self._passphrase).transaction
            time_bounds = tx.preconditions.time_bounds if tx.preconditions else None
            return PaymentArtifact(
                xdr=reservation.payment_xdr,
                job_id=job_id,
                amount=stroops_to_amount(to_stroops(amount)),
                source=source,
                destination=destination,
                network=self._network_name,
                memo=payment_memo(job_id),
                sequence=tx.sequence,
                max_time=time_bounds.max_time if time_bounds else 0,
                asset=asset_label(self.asset_for(currency)),
            )

        if reservation is not None:
            logger.info("payment.reservation_stale", job_id=job_id)
        return await self.build(job_id, source, destination, amount, currency=currency)
