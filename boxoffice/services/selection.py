"""Selection validation and pricing.

A selection is either an explicit list of seats (seat-mapped showings) or a
bare head count (showings without a seat map). Validation is a pure function
of the seat map, the set of committed seat ids and the base price; its result
is a quote, never proof of availability, so commit re-runs it under the
showing lock.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import AbstractSet, Optional, Sequence, Union

from boxoffice.core.errors import (
    DuplicateSeatError,
    InvalidSeatCountError,
    NoSeatsSelectedError,
    PlanNotAvailableError,
    SeatAlreadyReservedError,
    SeatNotFoundError,
)
from boxoffice.services.seat_map import SeatMap

PLACEHOLDER_PREFIX = "GA"
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class SeatList:
    seat_ids: Sequence[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "seat_ids", tuple(self.seat_ids))


@dataclass(frozen=True)
class BareCount:
    count: int
    labels: Sequence[str] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", tuple(self.labels or ()))


Selection = Union[SeatList, BareCount]


@dataclass(frozen=True)
class SelectedSeat:
    seat_id: str
    label: str
    row: str
    number: int
    seat_type: str
    accessible: bool
    price_modifier: Decimal
    price: Decimal


@dataclass(frozen=True)
class ValidatedSelection:
    seats: tuple[SelectedSeat, ...]
    seat_count: int
    total_price: Decimal
    mapped: bool
    placeholder_labels: tuple[str, ...] = field(default=())

    @property
    def seat_ids(self) -> list[str]:
        return [s.seat_id for s in self.seats]

    @property
    def sorted_seat_ids(self) -> list[str]:
        return sorted(self.seat_ids)

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.total_price)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal price to integer minor units, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_selection(
    seat_map: Optional[SeatMap],
    committed_seat_ids: AbstractSet[str],
    base_price: Decimal,
    selection: Selection,
) -> ValidatedSelection:
    """Check a selection against the seat map and current inventory.

    Seat lists are checked seat by seat in request order and fail on the
    first problem. Against a showing without a seat map a non-empty seat
    list fails PlanNotAvailable and an empty one InvalidSeatCount. A bare
    count against a seat-mapped showing fails NoSeatsSelected.
    """
    base_price = Decimal(base_price or 0)

    if isinstance(selection, BareCount):
        if seat_map:
            raise NoSeatsSelectedError()
        return _validate_count(base_price, selection)

    if not seat_map:
        # No seats and no count on a head-count showing means the count is missing
        if not selection.seat_ids:
            raise InvalidSeatCountError()
        raise PlanNotAvailableError()
    if not selection.seat_ids:
        raise NoSeatsSelectedError()

    seen: set[str] = set()
    seats = []
    for requested in selection.seat_ids:
        key = (requested or "").strip()
        seat = seat_map.find(key) if key else None
        if seat is None:
            raise SeatNotFoundError(key or str(requested))
        if seat.seat_id in seen:
            raise DuplicateSeatError(seat.seat_id)
        seen.add(seat.seat_id)
        if seat.seat_id in committed_seat_ids:
            raise SeatAlreadyReservedError(seat.seat_id, seat.label)

        seats.append(SelectedSeat(
            seat_id=seat.seat_id,
            label=seat.label,
            row=seat.row,
            number=seat.number,
            seat_type=seat.seat_type,
            accessible=seat.accessible,
            price_modifier=seat.price_modifier,
            price=(base_price + seat.price_modifier).quantize(CENTS),
        ))

    total = sum((s.price for s in seats), Decimal("0")).quantize(CENTS)
    return ValidatedSelection(
        seats=tuple(seats),
        seat_count=len(seats),
        total_price=total,
        mapped=True,
    )


def _validate_count(base_price: Decimal, selection: BareCount) -> ValidatedSelection:
    count = selection.count
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidSeatCountError()

    labels = [str(label).strip() for label in selection.labels[:count] if str(label).strip()]
    labels += [f"{PLACEHOLDER_PREFIX}-{i}" for i in range(len(labels) + 1, count + 1)]
    return ValidatedSelection(
        seats=(),
        seat_count=count,
        total_price=(base_price * count).quantize(CENTS),
        mapped=False,
        placeholder_labels=tuple(labels),
    )
