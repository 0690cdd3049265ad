"""
Business identifier generation.

Sequential numbers (bookings, shipments, invoices, consolidations,
receipts) take the highest existing value for the current prefix and add
one. The unique constraint on each column is what actually guarantees
uniqueness: callers commit through commit_with_unique_number(), which
re-derives and retries on IntegrityError.
"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import DuplicateIdentifierError
from backend.app.models.booking import Booking
from backend.app.models.shipment import Shipment
from backend.app.models.invoice import Invoice
from backend.app.models.consolidation import Consolidation
from backend.app.models.warehouse_receipt import WarehouseReceipt
from backend.app.models.lifecycle_enums import ShipmentCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")

BOOKING_PREFIXES = {
    ShipmentCategory.AIR_FREIGHT: "AB",
    ShipmentCategory.SEA_FREIGHT: "SB",
    ShipmentCategory.EXPRESS_COURIER: "EB",
}
DEFAULT_BOOKING_PREFIX = "GB"


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


async def next_sequence_number(db: AsyncSession, column, prefix: str, width: int) -> str:
    """
    Return prefix + (highest existing sequence for prefix + 1), zero-padded.
    
    Longer values sort first, so a sequence that outgrows its padding
    (AB26109999 -> AB261010000) keeps counting. Existing values that
    don't end in digits are ignored.
    """
    result = await db.execute(
        select(column)
        .where(column.like(f"{prefix}%"))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    )
    last = result.scalar()
    sequence = 1
    if last:
        tail = last[len(prefix):]
        if tail.isdigit():
            sequence = int(tail) + 1
    return f"{prefix}{sequence:0{width}d}"


def booking_number_prefix(category, now: Optional[datetime] = None) -> str:
    prefix = BOOKING_PREFIXES.get(category, DEFAULT_BOOKING_PREFIX)
    return f"{prefix}{_now(now).strftime('%y%m')}"


async def generate_booking_number(db: AsyncSession, category, now: Optional[datetime] = None) -> str:
    """AB/SB/EB/GB + YYMM + 4-digit sequence, e.g. AB26100001."""
    return await next_sequence_number(db, Booking.number, booking_number_prefix(category, now), 4)


async def generate_shipment_number(db: AsyncSession, category, now: Optional[datetime] = None) -> str:
    """SH + category initial + YYMM + 4-digit sequence, e.g. SHA26100001."""
    initial = category.value[0] if isinstance(category, ShipmentCategory) else "G"
    prefix = f"SH{initial}{_now(now).strftime('%y%m')}"
    return await next_sequence_number(db, Shipment.number, prefix, 4)


async def generate_invoice_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """INV-YYMM-NNNNN"""
    return await next_sequence_number(
        db, Invoice.invoice_number, f"INV-{_now(now).strftime('%y%m')}-", 5
    )


async def generate_consolidation_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """CON-YYMM-NNNN"""
    return await next_sequence_number(
        db, Consolidation.consolidation_number, f"CON-{_now(now).strftime('%y%m')}-", 4
    )


async def generate_receipt_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """RCP-YYMM-NNNNN"""
    return await next_sequence_number(
        db, WarehouseReceipt.receipt_number, f"RCP-{_now(now).strftime('%y%m')}-", 5
    )


async def commit_with_unique_number(
    db: AsyncSession,
    apply: Callable[[], Awaitable[T]],
    identifier_type: str,
    max_attempts: Optional[int] = None,
    reload: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """
    Run apply() then commit, retrying the whole unit on a unique-constraint clash.
    
    apply must derive its identifiers afresh each time it is called; a clash
    raised by a flush inside apply is retried the same way. After a
    rollback, reload (if given) refreshes any persistent objects apply reads.
    
    Raises:
        DuplicateIdentifierError: every attempt collided
    """
    attempts = max_attempts or settings.identifier_max_attempts
    
    for attempt in range(1, attempts + 1):
        try:
            result = await apply()
            await db.commit()
            return result
        except IntegrityError as e:
            await db.rollback()
            logger.warning(
                "%s collision on attempt %d/%d: %s",
                identifier_type, attempt, attempts, e.orig
            )
            if reload is not None:
                await reload()
    
    raise DuplicateIdentifierError(identifier_type, attempts)


def random_tracking_candidate(prefix: str) -> str:
    """prefix + 2 letters + 4 digits + 2 letters, e.g. CLCAB1234XY."""
    letters = string.ascii_uppercase
    return (
        prefix
        + "".join(secrets.choice(letters) for _ in range(2))
        + "".join(secrets.choice(string.digits) for _ in range(4))
        + "".join(secrets.choice(letters) for _ in range(2))
    )


class TrackingNumberGenerator:
    """
    Random tracking numbers, unique across bookings and shipments.
    
    After max_attempts collisions it falls back to a millisecond
    timestamp suffix, which is also checked.
    """
    
    def __init__(
        self,
        prefix: Optional[str] = None,
        max_attempts: Optional[int] = None,
        candidate: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.prefix = prefix or settings.tracking_number_prefix
        self.max_attempts = max_attempts or settings.tracking_number_max_attempts
        self._candidate = candidate or random_tracking_candidate
        self._clock = clock or time.time
    
    async def is_taken(self, db: AsyncSession, tracking_number: str) -> bool:
        for model in (Booking, Shipment):
            result = await db.execute(
                select(model.id).where(model.tracking_number == tracking_number).limit(1)
            )
            if result.scalar_one_or_none() is not None:
                return True
        return False
    
    async def generate(self, db: AsyncSession) -> str:
        for attempt in range(self.max_attempts):
            candidate = self._candidate(self.prefix)
            if not await self.is_taken(db, candidate):
                return candidate
            logger.info("Tracking number %s already in use, retrying", candidate)
        
        logger.warning("Tracking number space exhausted after %d attempts, using timestamp", self.max_attempts)
        millis = int(self._clock() * 1000)
        while True:
            candidate = f"{self.prefix}-{millis}"
            if not await self.is_taken(db, candidate):
                return candidate
            millis += 1
