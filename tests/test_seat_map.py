"""Unit tests for seat map construction and lookup."""

from decimal import Decimal

import pytest

from boxoffice.services.seat_map import SeatMap, row_label


class TestSynthesize:
    """Tests for SeatMap.synthesize."""

    def test_near_square_grid(self):
        """100 seats become 10 rows of 10."""
        seat_map = SeatMap.synthesize(100)
        assert len(seat_map.rows) == 10
        assert all(len(row.seats) == 10 for row in seat_map.rows)
        assert seat_map.total_seat_count() == 100

    def test_small_room_uses_minimum_row_width(self):
        """Rooms under 16 seats still get 4 seats per row."""
        seat_map = SeatMap.synthesize(6)
        assert [len(row.seats) for row in seat_map.rows] == [4, 2]
        assert [s.seat_id for s in seat_map.all_seats()] == ["A1", "A2", "A3", "A4", "B1", "B2"]

    def test_large_room_caps_row_width(self):
        """Row width never exceeds 20 seats."""
        seat_map = SeatMap.synthesize(1000)
        assert max(len(row.seats) for row in seat_map.rows) == 20
        assert seat_map.total_seat_count() == 1000

    def test_last_row_cut_at_capacity(self):
        """The last row is short when capacity is not a multiple of the row width."""
        seat_map = SeatMap.synthesize(10)
        # round(sqrt(10)) = 3 -> clamped to 4 per row
        assert [len(row.seats) for row in seat_map.rows] == [4, 4, 2]

    def test_rows_past_z_use_double_letters(self):
        """Row 27 is labelled AA."""
        seat_map = SeatMap.synthesize(27 * 20)
        names = [row.name for row in seat_map.rows]
        assert names[25] == "Z"
        assert names[26] == "AA"

    def test_vip_room_seating(self):
        """VIP rooms synthesize vip seats with a +5 modifier."""
        seat = next(SeatMap.synthesize(16, "vip").all_seats())
        assert seat.seat_type == "vip"
        assert seat.price_modifier == Decimal("5")

    def test_premium_room_seating(self):
        """Premium rooms synthesize premium seats with a +2 modifier."""
        seat = next(SeatMap.synthesize(16, "premium").all_seats())
        assert seat.seat_type == "premium"
        assert seat.price_modifier == Decimal("2")

    @pytest.mark.parametrize("room_type", ["classic", "imax", "4dx"])
    def test_other_rooms_are_standard(self, room_type):
        """Every other room type synthesizes standard seats at base price."""
        seat = next(SeatMap.synthesize(16, room_type).all_seats())
        assert seat.seat_type == "standard"
        assert seat.price_modifier == Decimal("0")

    def test_deterministic(self):
        """Same capacity and type always give the same map."""
        first = [s.seat_id for s in SeatMap.synthesize(57, "vip").all_seats()]
        second = [s.seat_id for s in SeatMap.synthesize(57, "vip").all_seats()]
        assert first == second

    def test_rejects_zero_capacity(self):
        """A room needs at least one seat."""
        with pytest.raises(ValueError):
            SeatMap.synthesize(0)


class TestFromPlan:
    """Tests for explicit room templates."""

    PLAN = {
        "rows": [
            {
                "name": "A",
                "seats": [
                    {"seat_id": "A1", "label": "Front 1", "number": 1},
                    {"seat_id": "A2", "number": 2, "seat_type": "accessible", "accessible": True},
                ],
            },
            {"name": "B", "seats": [{"seat_id": "B1", "number": 1, "price_modifier": "2.50"}]},
        ]
    }

    def test_preserves_template_order(self):
        """Rows and seats keep template order."""
        seat_map = SeatMap.from_plan(self.PLAN)
        assert [row.name for row in seat_map.rows] == ["A", "B"]
        assert [s.seat_id for s in seat_map.all_seats()] == ["A1", "A2", "B1"]

    def test_lookup_by_id_or_label(self):
        """find resolves both seat ids and display labels."""
        seat_map = SeatMap.from_plan(self.PLAN)
        assert seat_map.find("A1").seat_id == "A1"
        assert seat_map.find("Front 1").seat_id == "A1"
        assert seat_map.find("Z9") is None

    def test_label_defaults_to_seat_id(self):
        """Seats without a label are displayed by id."""
        assert SeatMap.from_plan(self.PLAN).find("B1").label == "B1"

    def test_price_modifier_parsed_as_decimal(self):
        """Modifiers keep their cents."""
        assert SeatMap.from_plan(self.PLAN).find("B1").price_modifier == Decimal("2.50")

    def test_duplicate_seat_ids_rejected(self):
        """A template cannot list the same seat id twice."""
        plan = {"rows": [{"name": "A", "seats": [
            {"seat_id": "A1", "number": 1},
            {"seat_id": "A1", "number": 2},
        ]}]}
        with pytest.raises(ValueError):
            SeatMap.from_plan(plan)

    def test_unknown_seat_type_rejected(self):
        """Seat types are a closed set."""
        plan = {"rows": [{"name": "A", "seats": [
            {"seat_id": "A1", "number": 1, "seat_type": "balcony"},
        ]}]}
        with pytest.raises(ValueError):
            SeatMap.from_plan(plan)


class TestForRoom:
    """Tests for SeatMap.for_room."""

    def test_explicit_template_wins(self):
        """A room with a template ignores its capacity."""
        seat_map = SeatMap.for_room(TestFromPlan.PLAN, capacity=100, room_type="vip")
        assert seat_map.total_seat_count() == 3

    def test_empty_template_falls_back_to_synthesis(self):
        """A template without rows is treated as no template."""
        seat_map = SeatMap.for_room({"rows": []}, capacity=12, room_type="classic")
        assert seat_map.total_seat_count() == 12


def test_row_label():
    """Spreadsheet-style row lettering."""
    assert [row_label(i) for i in (0, 1, 25, 26, 27, 51, 52)] == [
        "A", "B", "Z", "AA", "AB", "AZ", "BA",
    ]
