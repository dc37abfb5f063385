"""Booking engine: quote, commit, cancel.

Services:
- Own their transactions (one session per attempt) so a lost race can be
  rolled back and re-run from a clean read
- Validate against the committed-seat set, never the cached counter
- Talk to the payment gateway outside the per-showing lock
- Return pydantic views, never live ORM objects

Flow: quote (no inventory change) -> client pays out of band -> commit
(re-validate + cross-check the payment + write seats atomically). Cancel
refunds first and only then releases exactly the reservation's seats.
"""

import logging
import random
import string
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from boxoffice.core.errors import (
    AlreadyCancelledError,
    AmountMismatchError,
    ForbiddenError,
    InsufficientInventoryError,
    InvalidStatusTransitionError,
    InventoryBusyError,
    PaymentAlreadyUsedError,
    PaymentNotConfirmedError,
    PaymentOwnerMismatchError,
    PaymentSeatMismatchError,
    PaymentShowingMismatchError,
    ReservationNotFoundError,
    SeatAlreadyReservedError,
    ShowingBlockedError,
    ShowingInactiveError,
    ShowingNotFoundError,
)
from boxoffice.core.security import Requester
from boxoffice.models.reservation import (
    PaymentStatus,
    Reservation,
    ReservationSeat,
    ReservationStatus,
)
from boxoffice.models.room import Room
from boxoffice.models.showing import CommittedSeat, Showing, ShowingSeat
from boxoffice.schemas.reservation import QuoteResponse, Reservation as ReservationSchema
from boxoffice.schemas.showing import InventoryAudit, Showing as ShowingSchema
from boxoffice.services.inventory import (
    ShowingLocks,
    StaleInventory,
    committed_seat_ids,
    derive_available,
    reconcile_available,
    write_inventory,
)
from boxoffice.services.payments import (
    META_SEAT_COUNT,
    META_SEAT_IDS,
    META_SHOWING_ID,
    META_USER_ID,
    PaymentGateway,
    PaymentRecord,
    build_metadata,
)
from boxoffice.services.seat_map import SeatMap
from boxoffice.services.selection import (
    PLACEHOLDER_PREFIX,
    Selection,
    ValidatedSelection,
    validate_selection,
)

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "BOX-"


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _generate_reference(db: Session) -> str:
    """Generate a unique 'BOX-XXXXXXXX' reservation reference."""
    chars = string.ascii_uppercase + string.digits
    while True:
        reference = REFERENCE_PREFIX + "".join(random.choices(chars, k=8))
        if db.scalar(select(Reservation.id).where(Reservation.reference == reference)) is None:
            return reference


def load_showing(db: Session, showing_id, for_booking: bool = True) -> Showing:
    """Load a showing, rejecting ones that cannot take new bookings.

    Raises:
        ShowingNotFoundError: Unknown id.
        ShowingInactiveError: The showing was withdrawn.
        ShowingBlockedError: The showing is administratively blocked.
    """
    key = _as_uuid(showing_id)
    showing = db.get(Showing, key) if key else None
    if showing is None:
        raise ShowingNotFoundError()
    if for_booking:
        if not showing.is_active:
            raise ShowingInactiveError()
        if showing.blocked:
            raise ShowingBlockedError(showing.block_reason or None)
    return showing


def seat_map_of(showing: Showing) -> Optional[SeatMap]:
    if not showing.has_seat_map:
        return None
    return SeatMap.from_showing_seats(showing.seats)


def schedule_showing(
    db: Session,
    room: Room,
    title: str,
    base_price,
    starts_at: Optional[datetime] = None,
    seated: bool = True,
    total_seats: Optional[int] = None,
) -> Showing:
    """Create a showing with a snapshot of the room's seat map.

    Seated showings copy the room template (or a grid synthesized from its
    capacity) into ``showing_seats``; later template edits never reach them.
    Unseated showings count heads only, sized by ``total_seats`` or the room
    capacity. The caller commits.
    """
    showing = Showing(
        id=uuid.uuid4(),
        room_id=room.id,
        title=title,
        starts_at=starts_at,
        base_price=base_price,
        has_seat_map=seated,
    )
    if seated:
        seat_map = SeatMap.for_room(room.plan, room.capacity, room.room_type)
        for position, seat in enumerate(seat_map.all_seats()):
            showing.seats.append(ShowingSeat(
                position=position,
                seat_id=seat.seat_id,
                label=seat.label,
                row=seat.row,
                number=seat.number,
                seat_type=seat.seat_type,
                accessible=seat.accessible,
                price_modifier=seat.price_modifier,
            ))
        total = seat_map.total_seat_count()
    else:
        total = total_seats or room.capacity

    showing.total_seats = total
    showing.available_seats = total
    db.add(showing)
    db.flush()
    logger.info(
        "Scheduled showing %s (%s) in room %s with %d seat(s)%s",
        showing.id, title, room.name, total, "" if seated else " (no seat map)",
    )
    return showing


class BookingEngine:
    """Entry points for quoting, committing and cancelling reservations."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: PaymentGateway,
        locks: Optional[ShowingLocks] = None,
        currency: str = "eur",
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._gateway = gateway
        self._locks = locks or ShowingLocks()
        self._currency = currency
        self._max_attempts = max(1, max_attempts)

    # -----------------------------------------------------------------------
    # Quote
    # -----------------------------------------------------------------------

    def quote(self, showing_id, selection: Selection, requester: Requester) -> QuoteResponse:
        """Price a selection and open a payment intent for it.

        Nothing is reserved: availability is re-checked at commit.
        """
        with self._session_factory() as db:
            showing = load_showing(db, showing_id)
            validated = self._validate(db, showing, selection)
            # Cheap pre-check against the cached counter; commit is authoritative
            if validated.seat_count > showing.available_seats:
                raise InsufficientInventoryError(validated.seat_count, showing.available_seats)
            showing_key = str(showing.id)

        metadata = build_metadata(
            requester.user_id, showing_key, validated.seat_count, validated.seat_ids
        )
        intent = self._gateway.create_intent(validated.amount_minor, self._currency, metadata)
        logger.info(
            "Quoted %s seat(s) %s on showing %s for user %s: %d %s (intent %s)",
            validated.seat_count, validated.sorted_seat_ids, showing_key,
            requester.user_id, validated.amount_minor, self._currency, intent.id,
        )
        return QuoteResponse(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=validated.amount_minor,
            currency=intent.currency or self._currency,
            total_price=validated.total_price,
            seat_count=validated.seat_count,
            seat_ids=validated.sorted_seat_ids,
        )

    # -----------------------------------------------------------------------
    # Commit
    # -----------------------------------------------------------------------

    def commit(
        self,
        showing_id,
        selection: Selection,
        payment_reference: str,
        requester: Requester,
    ) -> ReservationSchema:
        """Turn a selection plus a confirmed payment into a confirmed reservation.

        Raises:
            SelectionError: The selection is invalid against current inventory.
            InsufficientInventoryError: Fewer seats left than requested.
            PaymentNotConfirmedError, AmountMismatchError, Payment*MismatchError,
            PaymentAlreadyUsedError: The payment does not fund this selection.
            PaymentGatewayError: The provider could not be reached.
            InventoryBusyError: The showing lock or optimistic retries ran out.
        """
        if not payment_reference:
            raise PaymentNotConfirmedError("A payment is required to confirm the reservation")

        # Unlocked pre-flight so stale selections fail before the gateway round trip
        with self._session_factory() as db:
            showing = load_showing(db, showing_id)
            self._reject_used_payment(db, payment_reference)
            validated = self._validate(db, showing, selection)
            self._check_inventory(db, showing, validated)
            showing_key = showing.id

        payment = self._gateway.retrieve(payment_reference)

        with self._locks.hold(showing_key):
            for attempt in range(1, self._max_attempts + 1):
                with self._session_factory() as db:
                    try:
                        reservation = self._commit_locked(
                            db, showing_key, selection, payment, payment_reference, requester
                        )
                        db.commit()
                    except StaleInventory:
                        db.rollback()
                        logger.info(
                            "Inventory of showing %s changed during commit, retrying (attempt %d)",
                            showing_key, attempt,
                        )
                        continue
                    except IntegrityError:
                        db.rollback()
                        if self._payment_in_use(db, payment_reference):
                            logger.warning("Payment %s was used concurrently", payment_reference)
                            raise PaymentAlreadyUsedError()
                        logger.info(
                            "Seat uniqueness conflict on showing %s, retrying (attempt %d)",
                            showing_key, attempt,
                        )
                        continue

                    view = ReservationSchema.model_validate(reservation)
                    logger.info(
                        "Committed reservation %s (%s) on showing %s: %d seat(s) %s, payment %s",
                        view.id, view.reference, showing_key, view.seat_count,
                        [s.seat_id for s in view.seats], payment_reference,
                    )
                    return view

        raise InventoryBusyError()

    def _commit_locked(
        self,
        db: Session,
        showing_id,
        selection: Selection,
        payment: Optional[PaymentRecord],
        payment_reference: str,
        requester: Requester,
    ) -> Reservation:
        showing = load_showing(db, showing_id)
        # A replayed payment is reported as such even when its seats are now taken
        self._reject_used_payment(db, payment_reference)
        try:
            validated = self._validate(db, showing, selection)
        except SeatAlreadyReservedError as e:
            logger.warning("Seat %s on showing %s was sold before commit", e.seat_id, showing.id)
            raise
        self._check_inventory(db, showing, validated)
        self._check_payment(payment, validated, showing, requester)

        reservation = Reservation(
            id=uuid.uuid4(),
            reference=_generate_reference(db),
            user_id=requester.user_id,
            showing_id=showing.id,
            seat_count=validated.seat_count,
            total_price=validated.total_price,
            status=ReservationStatus.confirmed.value,
            payment_status=PaymentStatus.paid.value,
            payment_reference=payment_reference,
        )
        db.add(reservation)

        for seat in validated.seats:
            reservation.seats.append(ReservationSeat(
                seat_id=seat.seat_id,
                label=seat.label,
                row=seat.row,
                number=seat.number,
                seat_type=seat.seat_type,
                price=seat.price,
            ))
            db.add(CommittedSeat(
                showing_id=showing.id,
                reservation_id=reservation.id,
                seat_id=seat.seat_id,
                label=seat.label,
                row=seat.row,
                number=seat.number,
                seat_type=seat.seat_type,
            ))
        # Placeholders are history only; they never enter committed_seats
        for number, label in enumerate(validated.placeholder_labels, start=1):
            reservation.seats.append(ReservationSeat(
                seat_id=f"{PLACEHOLDER_PREFIX}-{number}",
                label=label,
                row=PLACEHOLDER_PREFIX,
                number=number,
                seat_type="standard",
                price=showing.base_price,
            ))
        db.flush()

        available = reconcile_available(db, showing, -validated.seat_count)
        write_inventory(db, showing, available_seats=available)
        return reservation

    def _check_inventory(self, db: Session, showing: Showing, validated: ValidatedSelection) -> None:
        available = derive_available(db, showing)
        if validated.seat_count > available:
            raise InsufficientInventoryError(validated.seat_count, available)

    def _check_payment(
        self,
        payment: Optional[PaymentRecord],
        validated: ValidatedSelection,
        showing: Showing,
        requester: Requester,
    ) -> None:
        if payment is None or not payment.succeeded:
            raise PaymentNotConfirmedError()

        expected = validated.amount_minor
        if payment.amount != expected:
            logger.warning(
                "Amount mismatch on payment %s: captured %d, expected %d",
                payment.id, payment.amount, expected,
            )
            raise AmountMismatchError(expected=expected, captured=payment.amount)

        meta = payment.metadata
        if meta.get(META_USER_ID) != requester.user_id:
            logger.warning("Payment %s belongs to another user", payment.id)
            raise PaymentOwnerMismatchError()
        if meta.get(META_SHOWING_ID) != str(showing.id):
            logger.warning("Payment %s was made for another showing", payment.id)
            raise PaymentShowingMismatchError()
        try:
            paid_count = int(meta.get(META_SEAT_COUNT) or 0)
        except ValueError:
            paid_count = -1
        if paid_count != validated.seat_count:
            logger.warning("Payment %s seat count does not match the selection", payment.id)
            raise PaymentSeatMismatchError()
        paid_seats = meta.get(META_SEAT_IDS)
        if paid_seats and paid_seats != ",".join(validated.sorted_seat_ids):
            logger.warning("Payment %s seat ids do not match the selection", payment.id)
            raise PaymentSeatMismatchError()

    def _payment_in_use(self, db: Session, payment_reference: str) -> bool:
        # Any reservation, cancelled ones included: a refunded payment funds nothing
        return db.scalar(
            select(Reservation.id).where(Reservation.payment_reference == payment_reference)
        ) is not None

    def _reject_used_payment(self, db: Session, payment_reference: str) -> None:
        if self._payment_in_use(db, payment_reference):
            logger.warning("Rejected reuse of payment %s", payment_reference)
            raise PaymentAlreadyUsedError()

    def _validate(self, db: Session, showing: Showing, selection: Selection) -> ValidatedSelection:
        return validate_selection(
            seat_map_of(showing),
            committed_seat_ids(db, showing.id),
            showing.base_price,
            selection,
        )

    # -----------------------------------------------------------------------
    # Cancel / release
    # -----------------------------------------------------------------------

    def cancel(self, reservation_id, requester: Requester) -> ReservationSchema:
        """Cancel a reservation, refunding it first and then releasing its seats.

        A failed refund aborts the cancellation with nothing released.

        Raises:
            ReservationNotFoundError: Unknown id.
            ForbiddenError: Requester is neither the owner nor an admin.
            AlreadyCancelledError: The reservation is already cancelled.
            RefundFailedError: The provider refused the refund.
        """
        with self._session_factory() as db:
            reservation = self._load_reservation(db, reservation_id)
            if not requester.is_admin and reservation.user_id != requester.user_id:
                raise ForbiddenError()
            if reservation.status == ReservationStatus.cancelled.value:
                raise AlreadyCancelledError()
            reservation_key = reservation.id
            showing_key = reservation.showing_id
            needs_refund = (
                reservation.payment_status == PaymentStatus.paid.value
                and bool(reservation.payment_reference)
            )
            payment_reference = reservation.payment_reference

        if needs_refund:
            self._gateway.refund(payment_reference)
            # Record the refund at once so a retried cancel does not refund twice
            with self._session_factory() as db:
                reservation = db.get(Reservation, reservation_key)
                reservation.payment_status = PaymentStatus.refunded.value
                db.commit()
            logger.info("Refunded payment %s of reservation %s", payment_reference, reservation_key)

        with self._locks.hold(showing_key):
            for attempt in range(1, self._max_attempts + 1):
                with self._session_factory() as db:
                    try:
                        reservation, released = self._release_locked(db, reservation_key)
                        db.commit()
                    except StaleInventory:
                        db.rollback()
                        logger.info(
                            "Inventory of showing %s changed during cancel, retrying (attempt %d)",
                            showing_key, attempt,
                        )
                        continue

                    view = ReservationSchema.model_validate(reservation)
                    logger.info(
                        "Cancelled reservation %s on showing %s by %s, released %d seat(s)",
                        view.id, showing_key, requester.user_id, released,
                    )
                    return view

        raise InventoryBusyError()

    def _release_locked(self, db: Session, reservation_id) -> tuple[Reservation, int]:
        reservation = self._load_reservation(db, reservation_id)
        if reservation.status == ReservationStatus.cancelled.value:
            raise AlreadyCancelledError()
        showing = db.get(Showing, reservation.showing_id)

        reservation.status = ReservationStatus.cancelled.value
        reservation.cancelled_at = datetime.now(timezone.utc)

        if showing.has_seat_map:
            seat_ids = [s.seat_id for s in reservation.seats]
            # Match on the owning reservation too: never un-sell someone else's seat
            result = db.execute(
                delete(CommittedSeat)
                .where(
                    CommittedSeat.showing_id == showing.id,
                    CommittedSeat.reservation_id == reservation.id,
                    CommittedSeat.seat_id.in_(seat_ids),
                )
                .execution_options(synchronize_session=False)
            )
            released = result.rowcount
        else:
            released = reservation.seat_count
        db.flush()

        available = reconcile_available(db, showing, released)
        write_inventory(db, showing, available_seats=available)
        return reservation, released

    def _load_reservation(self, db: Session, reservation_id) -> Reservation:
        key = _as_uuid(reservation_id)
        reservation = db.get(Reservation, key) if key else None
        if reservation is None:
            raise ReservationNotFoundError()
        return reservation

    # -----------------------------------------------------------------------
    # Administrative operations
    # -----------------------------------------------------------------------

    def set_blocked(self, showing_id, blocked: bool, reason: Optional[str] = None) -> ShowingSchema:
        """Block or unblock new commits on a showing. Existing reservations are untouched."""
        with self._session_factory() as db:
            showing_key = load_showing(db, showing_id, for_booking=False).id

        with self._locks.hold(showing_key):
            for _ in range(self._max_attempts):
                with self._session_factory() as db:
                    showing = load_showing(db, showing_key, for_booking=False)
                    try:
                        write_inventory(
                            db, showing,
                            blocked=blocked,
                            block_reason=(reason or "") if blocked else "",
                        )
                        db.commit()
                    except StaleInventory:
                        db.rollback()
                        continue
                    db.refresh(showing)
                    logger.info(
                        "Showing %s %s%s", showing_key,
                        "blocked" if blocked else "unblocked",
                        f" ({reason})" if blocked and reason else "",
                    )
                    return ShowingSchema.model_validate(showing)
        raise InventoryBusyError()

    def override_status(
        self,
        reservation_id,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> ReservationSchema:
        """Administrative edit of status fields only; seats and price never change.

        Cancelling goes through ``cancel`` so seats are released; nothing
        leaves the cancelled state.
        """
        with self._session_factory() as db:
            showing_key = self._load_reservation(db, reservation_id).showing_id

        with self._locks.hold(showing_key):
            with self._session_factory() as db:
                reservation = self._load_reservation(db, reservation_id)
                current = reservation.status
                if status is not None and status != current:
                    if current == ReservationStatus.cancelled.value:
                        raise InvalidStatusTransitionError(current, status)
                    if status == ReservationStatus.cancelled.value:
                        raise InvalidStatusTransitionError(current, status)
                    reservation.status = status
                if payment_status is not None:
                    reservation.payment_status = payment_status
                db.commit()
                view = ReservationSchema.model_validate(reservation)

        logger.info(
            "Status override on reservation %s: status=%s payment=%s",
            view.id, view.status, view.payment_status,
        )
        return view

    def audit_inventory(self, showing_id, repair: bool = True) -> InventoryAudit:
        """Compare the cached available_seats with the committed-seat set, optionally repairing it."""
        with self._session_factory() as db:
            showing_key = load_showing(db, showing_id, for_booking=False).id

        with self._locks.hold(showing_key):
            with self._session_factory() as db:
                showing = load_showing(db, showing_key, for_booking=False)
                cached = showing.available_seats
                derived = derive_available(db, showing)
                repaired = False
                if cached != derived and repair:
                    write_inventory(db, showing, available_seats=derived)
                    db.commit()
                    repaired = True
                    logger.warning(
                        "Repaired available_seats of showing %s: %d -> %d",
                        showing_key, cached, derived,
                    )
                return InventoryAudit(
                    showing_id=showing_key,
                    total_seats=showing.total_seats,
                    cached_available=cached,
                    derived_available=derived,
                    consistent=cached == derived,
                    repaired=repaired,
                )
