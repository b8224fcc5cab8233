"""Unit tests for stop lists and triangular fare tables."""

from types import MappingProxyType

import pytest

from routeadmin.errors import FareTableMismatch
from routeadmin.models import BusType, RouteDocument
from routeadmin.services.fare_matrix import (
    NO_SLOT,
    RouteFares,
    StopFareTable,
    bulk_insert_stops,
    coerce_fare,
    get_fare,
    insert_stop,
    iter_pairs,
    remove_stop,
    resize_for_insert,
    resize_for_remove,
    set_fare,
    table_size,
    to_slot,
)


def build_table(stops):
    """Table whose fare between stops i < j is 100 * i + j."""
    n = len(stops)
    fares = [0] * table_size(n)
    for from_idx, to_idx in iter_pairs(n):
        fares[to_slot(from_idx, to_idx, n)] = 100 * from_idx + to_idx
    return StopFareTable(tuple(stops), tuple(fares))


class TestIndexTranslation:
    """Test slot arithmetic."""

    @pytest.mark.parametrize("n, expected", [(0, 0), (1, 0), (2, 1), (3, 3), (4, 6), (10, 45)])
    def test_table_size(self, n, expected):
        assert table_size(n) == expected

    def test_table_size_negative(self):
        assert table_size(-3) == 0

    @pytest.mark.parametrize("n", range(0, 15))
    def test_slots_are_a_bijection(self, n):
        """Every valid pair maps to a distinct slot covering the whole array."""
        slots = [to_slot(f, t, n) for f in range(n) for t in range(f + 1, n)]
        assert sorted(slots) == list(range(table_size(n)))

    @pytest.mark.parametrize("n", range(0, 8))
    def test_iter_pairs_follows_slot_order(self, n):
        slots = [to_slot(f, t, n) for f, t in iter_pairs(n)]
        assert slots == list(range(table_size(n)))

    def test_row_offsets(self):
        """Row ``to`` starts at to * (to - 1) / 2."""
        assert to_slot(0, 1, 5) == 0
        assert to_slot(0, 2, 5) == 1
        assert to_slot(1, 2, 5) == 2
        assert to_slot(0, 3, 5) == 3
        assert to_slot(0, 4, 5) == 6
        assert to_slot(3, 4, 5) == 9

    @pytest.mark.parametrize("n", range(0, 7))
    def test_reverse_and_diagonal_are_sentinel(self, n):
        for f in range(n):
            for t in range(0, f + 1):
                assert to_slot(f, t, n) == NO_SLOT

    @pytest.mark.parametrize("from_idx, to_idx", [(-1, 2), (0, 4), (3, 7), (-2, -1)])
    def test_out_of_range_is_sentinel(self, from_idx, to_idx):
        assert to_slot(from_idx, to_idx, 4) == NO_SLOT


class TestStopList:
    """Test stop list mutations."""

    def test_insert_appends_by_default(self):
        stops, index = insert_stop(["A", "B"], "C")
        assert stops == ["A", "B", "C"]
        assert index == 2

    def test_insert_at_position(self):
        stops, index = insert_stop(["A", "B"], "M", 1)
        assert stops == ["A", "M", "B"]
        assert index == 1

    def test_insert_past_end_appends(self):
        stops, index = insert_stop(["A"], "B", 10)
        assert stops == ["A", "B"]
        assert index == 1

    def test_insert_negative_position_goes_first(self):
        stops, index = insert_stop(["A"], "B", -4)
        assert stops == ["B", "A"]
        assert index == 0

    def test_insert_duplicate_is_rejected(self):
        original = ["A", "B"]
        stops, index = insert_stop(original, "B", 0)
        assert stops == ["A", "B"]
        assert index is None

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_insert_blank_is_rejected(self, name):
        stops, index = insert_stop(["A"], name)
        assert stops == ["A"]
        assert index is None

    def test_insert_strips_name(self):
        stops, _ = insert_stop([], "  Kandy ")
        assert stops == ["Kandy"]

    def test_insert_does_not_mutate_input(self):
        original = ["A"]
        insert_stop(original, "B")
        assert original == ["A"]

    def test_remove_returns_index(self):
        stops, index = remove_stop(["A", "B", "C"], "B")
        assert stops == ["A", "C"]
        assert index == 1

    def test_remove_strips_name(self):
        stops, index = remove_stop(["A", "B"], " A ")
        assert stops == ["B"]
        assert index == 0

    def test_remove_missing_is_reported(self):
        stops, index = remove_stop(["A"], "Z")
        assert stops == ["A"]
        assert index is None

    def test_bulk_insert_drops_blanks_and_duplicates(self):
        stops, added = bulk_insert_stops([], "X, Y ,, X")
        assert stops == ["X", "Y"]
        assert added == ["X", "Y"]

    def test_bulk_insert_skips_existing(self):
        stops, added = bulk_insert_stops(["Y"], "X,Y,Z")
        assert stops == ["Y", "X", "Z"]
        assert added == ["X", "Z"]

    def test_bulk_insert_empty_text(self):
        stops, added = bulk_insert_stops(["A"], " , ,")
        assert stops == ["A"]
        assert added == []


class TestResize:
    """Test fare table re-slicing when stops move."""

    @pytest.mark.parametrize("k", range(0, 6))
    def test_insert_keeps_fares_by_name(self, k):
        table = build_table(["A", "B", "C", "D", "E"])
        grown, index = table.with_stop_inserted("Z", k)

        assert index == k
        assert len(grown.fares) == table_size(6)
        for from_name, to_name in [(a, b) for i, a in enumerate(table.stops) for b in table.stops[i + 1:]]:
            assert grown.fare_between(from_name, to_name) == table.fare_between(from_name, to_name)

    @pytest.mark.parametrize("k", range(0, 6))
    def test_new_stop_pairs_start_at_zero(self, k):
        grown, index = build_table(["A", "B", "C", "D", "E"]).with_stop_inserted("Z", k)
        for other in range(grown.size):
            if other < index:
                assert grown.fare(other, index) == 0
            elif other > index:
                assert grown.fare(index, other) == 0

    @pytest.mark.parametrize("name", ["A", "C", "E"])
    def test_remove_keeps_remaining_fares(self, name):
        """Removing the first, a middle or the last stop keeps every other pair."""
        table = build_table(["A", "B", "C", "D", "E"])
        shrunk, _ = table.with_stop_removed(name)

        assert len(shrunk.fares) == table_size(4)
        for i, from_name in enumerate(shrunk.stops):
            for to_name in shrunk.stops[i + 1:]:
                assert shrunk.fare_between(from_name, to_name) == table.fare_between(from_name, to_name)

    def test_remove_first_stop_exact_values(self):
        shrunk = resize_for_remove([1, 2, 3], 3, 0)
        # (1, 2) -> (0, 1)
        assert shrunk == [3]

    def test_remove_last_stop_exact_values(self):
        shrunk = resize_for_remove([1, 2, 3], 3, 2)
        assert shrunk == [1]

    @pytest.mark.parametrize("k", range(0, 6))
    def test_insert_then_remove_restores_table(self, k):
        table = build_table(["A", "B", "C", "D", "E"])
        grown, _ = table.with_stop_inserted("Z", k)
        restored, index = grown.with_stop_removed("Z")
        assert index == k
        assert restored == table

    def test_resize_small_tables(self):
        assert resize_for_insert([], 0, 0) == []
        assert resize_for_insert([], 1, 0) == [0]
        assert resize_for_remove([7], 2, 1) == []
        assert resize_for_remove([], 1, 0) == []

    def test_resize_rejects_wrong_size(self):
        with pytest.raises(FareTableMismatch):
            resize_for_insert([1, 2], 3, 0)
        with pytest.raises(FareTableMismatch):
            resize_for_remove([1, 2, 3, 4], 3, 0)

    def test_resize_rejects_bad_index(self):
        with pytest.raises(FareTableMismatch):
            resize_for_insert([1], 2, 3)
        with pytest.raises(FareTableMismatch):
            resize_for_remove([1], 2, 2)

    def test_bulk_append_extends_table(self):
        table = build_table(["A", "B", "C"])
        grown, added = table.with_bulk_stops("D, E")
        assert added == ["D", "E"]
        assert len(grown.fares) == table_size(5)
        assert grown.fare_between("A", "C") == table.fare_between("A", "C")
        assert grown.fare_between("C", "E") == 0


class TestFareAccess:
    """Test fare lookup and update."""

    def test_set_then_get(self):
        fares, applied = set_fare([0, 0, 0], 3, 1, 2, 40)
        assert applied
        assert get_fare(fares, 3, 1, 2) == 40

    def test_reverse_lookup_is_unset(self):
        fares, _ = set_fare([0, 0, 0], 3, 0, 2, 40)
        assert get_fare(fares, 3, 2, 0) is None

    def test_set_invalid_pair_is_noop(self):
        fares, applied = set_fare([1, 2, 3], 3, 2, 1, 99)
        assert not applied
        assert fares == [1, 2, 3]

    def test_lookup_on_empty_table(self):
        assert get_fare([], 0, 0, 1) is None
        assert get_fare([], 1, 0, 0) is None
        assert StopFareTable(("Only",), ()).fare(0, 1) is None

    def test_unset_valid_slot_is_zero(self):
        assert get_fare([0], 2, 0, 1) == 0

    @pytest.mark.parametrize("value, expected", [
        (12, 12),
        (12.9, 12),
        ("25", 25),
        ("  7 ", 7),
        ("12abc", 12),
        ("abc", 0),
        ("", 0),
        (None, 0),
        (-5, 0),
        ("-3", 0),
        (True, 0),
        (float("nan"), 0),
    ])
    def test_coerce_fare(self, value, expected):
        assert coerce_fare(value) == expected

    def test_grid_rows(self):
        table = StopFareTable(("A", "B", "C"), (10, 25, 15))
        assert table.grid() == [
            ("B", {"A": 10}),
            ("C", {"A": 25, "B": 15}),
        ]


class TestRouteFares:
    """Test the per-route snapshot."""

    def setup_method(self):
        self.route = RouteFares.create("138", "Colombo - Kandy", [BusType.LUXURY])

    def test_scenario(self):
        """Walk through inserting, pricing and removing stops."""
        route = self.route
        outcome = route.insert_stop(BusType.LUXURY, "A")
        route = outcome.route
        assert route.table(BusType.LUXURY) == StopFareTable(("A",), ())

        route = route.insert_stop(BusType.LUXURY, "B").route
        assert route.table(BusType.LUXURY).fares == (0,)

        route = route.set_fare(BusType.LUXURY, 0, 1, 50).route
        assert route.table(BusType.LUXURY).fares == (50,)

        outcome = route.insert_stop(BusType.LUXURY, "M", 1)
        assert outcome.index == 1
        route = outcome.route
        table = route.table(BusType.LUXURY)
        assert table.stops == ("A", "M", "B")
        assert len(table.fares) == 3
        assert table.fare(0, 2) == 50
        assert table.fare(0, 1) == 0
        assert table.fare(1, 2) == 0

        route = route.remove_stop(BusType.LUXURY, "M").route
        assert route.table(BusType.LUXURY) == StopFareTable(("A", "B"), (50,))

    def test_mutations_leave_original_untouched(self):
        self.route.insert_stop(BusType.LUXURY, "A")
        assert self.route.table(BusType.LUXURY).stops == ()

    def test_duplicate_stop_is_soft_warning(self):
        route = self.route.insert_stop(BusType.LUXURY, "A").route
        outcome = route.insert_stop(BusType.LUXURY, "A")
        assert not outcome.applied
        assert "already exists" in outcome.warning
        assert outcome.route is route

    def test_empty_stop_is_soft_warning(self):
        outcome = self.route.insert_stop(BusType.LUXURY, "  ")
        assert not outcome.applied
        assert outcome.warning == "Stop name must not be empty"

    def test_missing_stop_removal_is_soft_warning(self):
        outcome = self.route.remove_stop(BusType.LUXURY, "Nowhere")
        assert not outcome.applied
        assert "not found" in outcome.warning

    def test_edit_on_unselected_bus_type(self):
        outcome = self.route.insert_stop(BusType.AC, "A")
        assert not outcome.applied
        assert "AC" in outcome.warning

    def test_edit_on_unknown_bus_type(self):
        outcome = self.route.insert_stop("Double-decker", "A")
        assert not outcome.applied
        assert "Unknown bus type" in outcome.warning

    def test_invalid_fare_pair_is_soft_warning(self):
        route = self.route.bulk_insert_stops(BusType.LUXURY, "A,B").route
        outcome = route.set_fare(BusType.LUXURY, 1, 0, 20)
        assert not outcome.applied
        assert outcome.route.table(BusType.LUXURY).fares == (0,)

    def test_bulk_insert_reports_skipped(self):
        outcome = self.route.bulk_insert_stops(BusType.LUXURY, "X, Y ,, X")
        assert outcome.applied
        assert outcome.route.table(BusType.LUXURY).stops == ("X", "Y")
        assert outcome.warning == "Skipped 1 duplicate stop(s)"

    def test_select_service_classes(self):
        route = self.route.bulk_insert_stops(BusType.LUXURY, "A,B").route
        outcome = route.select_service_classes([BusType.LUXURY, "AC"])
        assert outcome.applied
        route = outcome.route
        assert route.bus_types == (BusType.LUXURY, BusType.AC)
        assert route.table(BusType.LUXURY).stops == ("A", "B")
        assert route.table(BusType.AC) == StopFareTable()

        route = route.select_service_classes([BusType.AC]).route
        assert route.table(BusType.LUXURY) is None

        # Reselecting starts from scratch.
        route = route.select_service_classes([BusType.AC, BusType.LUXURY]).route
        assert route.table(BusType.LUXURY) == StopFareTable()

    def test_select_nothing_is_rejected(self):
        outcome = self.route.select_service_classes([])
        assert not outcome.applied
        assert outcome.route.bus_types == (BusType.LUXURY,)

    def test_select_unknown_is_rejected(self):
        outcome = self.route.select_service_classes(["Luxury", "Hovercraft"])
        assert not outcome.applied

    def test_check_detects_mismatch(self):
        broken = RouteFares(
            "1", "Broken", (BusType.AC,),
            MappingProxyType({BusType.AC: StopFareTable(("A", "B"), ())}),
        )
        with pytest.raises(FareTableMismatch):
            broken.check()

    def test_check_detects_missing_table(self):
        broken = RouteFares("1", "Broken", (BusType.AC,), MappingProxyType({}))
        with pytest.raises(FareTableMismatch):
            broken.check()


class TestSerialization:
    """Test conversion to and from the transport document."""

    def test_round_trip(self):
        route = RouteFares.create("138", "Colombo - Kandy", [BusType.EXPRESSWAY])
        route = route.bulk_insert_stops(BusType.EXPRESSWAY, "A,B,C").route
        route = route.set_fare(BusType.EXPRESSWAY, 0, 1, 10).route
        route = route.set_fare(BusType.EXPRESSWAY, 0, 2, 25).route
        route = route.set_fare(BusType.EXPRESSWAY, 1, 2, 15).route

        payload = route.to_document().model_dump(by_alias=True, mode="json")
        assert payload["busTypes"] == ["Expressway"]
        assert payload["locations"] == {"Expressway": ["A", "B", "C"]}
        assert payload["fareMatrix"] == {"Expressway": [10, 25, 15]}

        restored = RouteFares.from_document(RouteDocument.model_validate(payload))
        table = restored.table(BusType.EXPRESSWAY)
        assert table.stops == ("A", "B", "C")
        assert table.fare_between("A", "B") == 10
        assert table.fare_between("A", "C") == 25
        assert table.fare_between("B", "C") == 15
        assert restored.to_document() == route.to_document()

    def test_missing_entries_load_empty(self):
        document = RouteDocument.model_validate({
            "number": "1", "name": "Loop", "busTypes": ["AC", "Luxury"],
            "locations": {"AC": ["A", "B"]},
            "fareMatrix": {"AC": [5]},
        })
        route = RouteFares.from_document(document)
        assert route.table(BusType.LUXURY) == StopFareTable()
        assert route.table(BusType.AC).fares == (5,)

    def test_unselected_entries_are_ignored(self):
        document = RouteDocument.model_validate({
            "number": "1", "name": "Loop", "busTypes": ["AC"],
            "locations": {"AC": [], "Luxury": ["A", "B"]},
            "fareMatrix": {"Luxury": [9]},
        })
        route = RouteFares.from_document(document)
        assert set(route.tables) == {BusType.AC}

    def test_mismatched_fare_array_is_rejected(self):
        document = RouteDocument.model_validate({
            "number": "1", "name": "Loop", "busTypes": ["AC"],
            "locations": {"AC": ["A", "B", "C"]},
            "fareMatrix": {"AC": [1, 2]},
        })
        with pytest.raises(FareTableMismatch):
            RouteFares.from_document(document)

    def test_document_requires_bus_types(self):
        with pytest.raises(ValueError):
            RouteDocument.model_validate({"number": "1", "name": "x", "busTypes": []})

    def test_document_rejects_duplicate_bus_types(self):
        with pytest.raises(ValueError):
            RouteDocument.model_validate(
                {"number": "1", "name": "x", "busTypes": ["AC", "AC"]}
            )

    @pytest.mark.parametrize("fares", [[-40], [10, -1, 5]])
    def test_document_rejects_negative_fares(self, fares):
        stops = ["A", "B"] if len(fares) == 1 else ["A", "B", "C"]
        with pytest.raises(ValueError, match="must not be negative"):
            RouteDocument.model_validate({
                "number": "1", "name": "x", "busTypes": ["AC"],
                "locations": {"AC": stops},
                "fareMatrix": {"AC": fares},
            })

    @pytest.mark.parametrize("stops", [[""], ["A", "   "]])
    def test_document_rejects_blank_stops(self, stops):
        with pytest.raises(ValueError, match="must not be empty"):
            RouteDocument.model_validate({
                "number": "1", "name": "x", "busTypes": ["AC"],
                "locations": {"AC": stops},
            })

    def test_document_strips_stop_names(self):
        document = RouteDocument.model_validate({
            "number": "1", "name": "x", "busTypes": ["AC"],
            "locations": {"AC": [" A", "B "]},
            "fareMatrix": {"AC": [7]},
        })
        assert document.locations[BusType.AC] == ["A", "B"]
        assert RouteFares.from_document(document).table(BusType.AC).fare_between("A", "B") == 7

    @pytest.mark.parametrize("table", [
        StopFareTable(("A", "B"), (-1,)),
        StopFareTable(("",), ()),
        StopFareTable((" A", "B"), (3,)),
        StopFareTable(("A", "A"), (3,)),
    ])
    def test_check_rejects_bad_table(self, table):
        with pytest.raises(FareTableMismatch):
            table.check()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
