"""Seat map model: the fixed row/seat geometry of a showing.

A seat map is built once when a showing is created, either copied from the
room's explicit template or synthesized from the room capacity, and is never
mutated afterwards. Reservation status lives elsewhere (committed seats).
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, Optional

SEAT_TYPES = ("standard", "vip", "premium", "accessible")

MIN_SEATS_PER_ROW = 4
MAX_SEATS_PER_ROW = 20

# room type -> (seat type, price modifier) used when synthesizing a plan
ROOM_TYPE_SEATING = {
    "vip": ("vip", Decimal("5")),
    "premium": ("premium", Decimal("2")),
}
DEFAULT_SEATING = ("standard", Decimal("0"))


@dataclass(frozen=True)
class SeatDefinition:
    seat_id: str
    label: str
    row: str
    number: int
    seat_type: str = "standard"
    accessible: bool = False
    price_modifier: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if not self.seat_id or not self.label:
            raise ValueError("Seat requires a seat_id and a label")
        if self.number < 1:
            raise ValueError("Seat number must be >= 1")
        if self.seat_type not in SEAT_TYPES:
            raise ValueError(f"Unknown seat type '{self.seat_type}'")


@dataclass(frozen=True)
class SeatRow:
    name: str
    seats: tuple[SeatDefinition, ...]


class SeatMap:
    """Immutable seat geometry with lookup by seat id or display label."""

    def __init__(self, rows: Iterable[SeatRow]) -> None:
        self._rows = tuple(rows)
        self._by_key: dict[str, SeatDefinition] = {}
        seen: set[str] = set()
        for seat in self.all_seats():
            if seat.seat_id in seen:
                raise ValueError(f"Duplicate seat id '{seat.seat_id}' in seat map")
            seen.add(seat.seat_id)
        # Labels first so a seat_id always wins when it collides with another seat's label
        for seat in self.all_seats():
            self._by_key.setdefault(seat.label, seat)
        for seat in self.all_seats():
            self._by_key[seat.seat_id] = seat

    @property
    def rows(self) -> tuple[SeatRow, ...]:
        return self._rows

    def all_seats(self) -> Iterator[SeatDefinition]:
        for row in self._rows:
            yield from row.seats

    def total_seat_count(self) -> int:
        return sum(len(row.seats) for row in self._rows)

    def find(self, key: str) -> Optional[SeatDefinition]:
        return self._by_key.get(key)

    def __len__(self) -> int:
        return self.total_seat_count()

    def __bool__(self) -> bool:
        return self.total_seat_count() > 0

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @classmethod
    def from_plan(cls, plan: dict) -> "SeatMap":
        """Build from a template of the form {"rows": [{"name", "seats": [...]}]}."""
        rows = []
        for row in (plan or {}).get("rows") or []:
            seats = tuple(
                SeatDefinition(
                    seat_id=str(seat["seat_id"]).strip(),
                    label=str(seat.get("label") or seat["seat_id"]).strip(),
                    row=str(seat.get("row") or row["name"]).strip(),
                    number=int(seat["number"]),
                    seat_type=seat.get("seat_type") or "standard",
                    accessible=bool(seat.get("accessible", False)),
                    price_modifier=Decimal(str(seat.get("price_modifier") or 0)),
                )
                for seat in row.get("seats") or []
            )
            rows.append(SeatRow(name=str(row["name"]).strip(), seats=seats))
        return cls(rows)

    @classmethod
    def synthesize(cls, capacity: int, room_type: str = "classic") -> "SeatMap":
        """Generate a near-square grid for a room without an explicit template.

        Deterministic for a given (capacity, room_type): rows are lettered
        A, B, ... Z, AA, AB, ..., seats are numbered from 1 and assigned
        row-major, and the last row is cut short at ``capacity``.
        """
        if capacity < 1:
            raise ValueError("Capacity must be >= 1")
        seats_per_row = max(
            MIN_SEATS_PER_ROW,
            min(MAX_SEATS_PER_ROW, math.floor(math.sqrt(capacity) + 0.5)),
        )
        row_count = math.ceil(capacity / seats_per_row)
        seat_type, modifier = ROOM_TYPE_SEATING.get(room_type, DEFAULT_SEATING)

        rows = []
        for i in range(row_count):
            row_name = row_label(i)
            seats = []
            for j in range(seats_per_row):
                if i * seats_per_row + j >= capacity:
                    break
                seat_id = f"{row_name}{j + 1}"
                seats.append(SeatDefinition(
                    seat_id=seat_id,
                    label=seat_id,
                    row=row_name,
                    number=j + 1,
                    seat_type=seat_type,
                    accessible=False,
                    price_modifier=modifier,
                ))
            rows.append(SeatRow(name=row_name, seats=tuple(seats)))
        return cls(rows)

    @classmethod
    def for_room(cls, plan: Optional[dict], capacity: int, room_type: str) -> "SeatMap":
        """Snapshot a room: its explicit template if it has one, else a synthesized grid."""
        if plan and plan.get("rows"):
            seat_map = cls.from_plan(plan)
            if seat_map:
                return seat_map
        return cls.synthesize(capacity, room_type)

    @classmethod
    def from_showing_seats(cls, showing_seats) -> "SeatMap":
        """Rebuild from persisted ShowingSeat rows (already ordered by position)."""
        rows: dict[str, list[SeatDefinition]] = {}
        for s in showing_seats:
            rows.setdefault(s.row, []).append(SeatDefinition(
                seat_id=s.seat_id,
                label=s.label,
                row=s.row,
                number=s.number,
                seat_type=s.seat_type,
                accessible=bool(s.accessible),
                price_modifier=Decimal(s.price_modifier or 0),
            ))
        return cls(SeatRow(name=name, seats=tuple(seats)) for name, seats in rows.items())


def row_label(index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA', 27 -> 'AB'."""
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        label = chr(65 + rem) + label
    return label
