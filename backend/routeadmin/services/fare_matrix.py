"""
Stop lists and compact triangular fare tables.

For ``n`` stops only the fares from an earlier stop to a later one are kept.
They live in a flat array of ``n * (n - 1) / 2`` slots laid out by increasing
``to`` index, then increasing ``from`` index, so row ``to`` starts at offset
``to * (to - 1) / 2``::

    to \\ from   0   1   2
        1       0
        2       1   2
        3       3   4   5

Everything here is pure: mutations return new lists, tuples or snapshots and
leave their inputs alone.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from routeadmin.errors import FareTableMismatch
from routeadmin.models import BusType, RouteDocument

logger = logging.getLogger(__name__)

NO_SLOT = -1

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def table_size(n: int) -> int:
    """Number of fare slots needed for ``n`` stops."""
    if n <= 1:
        return 0
    return n * (n - 1) // 2


def to_slot(from_idx: int, to_idx: int, n: int) -> int:
    """
    Flat slot of the fare from stop ``from_idx`` to stop ``to_idx``.

    Returns ``NO_SLOT`` unless ``0 <= from_idx < to_idx < n``; callers treat
    that as "no fare applies".
    """
    if not 0 <= from_idx < to_idx < n:
        return NO_SLOT
    return from_idx + (to_idx - 1) * to_idx // 2


def iter_pairs(n: int) -> Iterator[Tuple[int, int]]:
    """Yield every valid ``(from, to)`` pair in slot order."""
    for to_idx in range(1, n):
        for from_idx in range(to_idx):
            yield from_idx, to_idx


def insert_stop(
    stops: Sequence[str], name: str, position: Optional[int] = None
) -> Tuple[List[str], Optional[int]]:
    """
    Insert ``name`` at ``position``, appending when it is omitted or past the end.

    Returns the new list and the index used, or the unchanged list and ``None``
    when the name is blank or already present.
    """
    name = (name or "").strip()
    current = list(stops)
    if not name or name in current:
        return current, None

    if position is None or position >= len(current):
        index = len(current)
    else:
        index = max(position, 0)

    current.insert(index, name)
    return current, index


def remove_stop(stops: Sequence[str], name: str) -> Tuple[List[str], Optional[int]]:
    """Remove the first occurrence of ``name``; index is ``None`` if not found."""
    current = list(stops)
    try:
        index = current.index((name or "").strip())
    except ValueError:
        return current, None
    del current[index]
    return current, index


def split_stop_text(raw_text: str) -> List[str]:
    """Split comma separated stop names, dropping blanks."""
    return [token.strip() for token in (raw_text or "").split(",") if token.strip()]


def bulk_insert_stops(stops: Sequence[str], raw_text: str) -> Tuple[List[str], List[str]]:
    """
    Append the comma separated names in ``raw_text``.

    Names already in the list (or earlier in the same text) are skipped.
    Returns the new list and the names actually appended.
    """
    current = list(stops)
    added = []
    for token in split_stop_text(raw_text):
        if token not in current:
            current.append(token)
            added.append(token)
    return current, added


def _check_size(fares: Sequence[int], n: int) -> None:
    expected = table_size(n)
    if len(fares) != expected:
        raise FareTableMismatch(
            f"Fare table holds {len(fares)} values but {n} stops need {expected}"
        )


def resize_for_insert(fares: Sequence[int], n: int, k: int) -> List[int]:
    """
    Re-slice ``fares`` for ``n`` stops after a stop is inserted at index ``k``.

    Old pairs keep their values at their shifted position; pairs touching the
    new stop start at 0.
    """
    _check_size(fares, n)
    if not 0 <= k <= n:
        raise FareTableMismatch(f"Insert index {k} outside 0..{n}")

    resized = [0] * table_size(n + 1)
    for old_from, old_to in iter_pairs(n):
        new_from = old_from + (1 if old_from >= k else 0)
        new_to = old_to + (1 if old_to >= k else 0)
        resized[to_slot(new_from, new_to, n + 1)] = fares[to_slot(old_from, old_to, n)]
    return resized


def resize_for_remove(fares: Sequence[int], n: int, k: int) -> List[int]:
    """
    Re-slice ``fares`` for ``n`` stops after the stop at index ``k`` is removed.

    Pairs touching ``k`` are dropped, the rest keep their values.
    """
    _check_size(fares, n)
    if not 0 <= k < n:
        raise FareTableMismatch(f"Remove index {k} outside 0..{n - 1}")

    resized = [0] * table_size(n - 1)
    for old_from, old_to in iter_pairs(n):
        if old_from == k or old_to == k:
            continue
        new_from = old_from - (1 if old_from > k else 0)
        new_to = old_to - (1 if old_to > k else 0)
        resized[to_slot(new_from, new_to, n - 1)] = fares[to_slot(old_from, old_to, n)]
    return resized


def coerce_fare(value) -> int:
    """
    Turn user input into a non-negative integer fare.

    Strings are read up to the first non-digit, floats are truncated. Anything
    unreadable or negative becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        fare = value
    elif isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return 0
        fare = int(value)
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 0
        fare = int(match.group(1))
    return max(fare, 0)


def get_fare(fares: Sequence[int], n: int, from_idx: int, to_idx: int) -> Optional[int]:
    """Fare between two stops, or ``None`` when no fare applies to the pair."""
    slot = to_slot(from_idx, to_idx, n)
    if slot == NO_SLOT or slot >= len(fares):
        return None
    return fares[slot]


def set_fare(
    fares: Sequence[int], n: int, from_idx: int, to_idx: int, value
) -> Tuple[List[int], bool]:
    """Write a coerced fare; returns the new table and whether it was applied."""
    updated = list(fares)
    slot = to_slot(from_idx, to_idx, n)
    if slot == NO_SLOT or slot >= len(updated):
        return updated, False
    updated[slot] = coerce_fare(value)
    return updated, True


@dataclass(frozen=True)
class StopFareTable:
    """Stop list and fare array of one service class, always kept in step."""
    stops: Tuple[str, ...] = ()
    fares: Tuple[int, ...] = ()

    @property
    def size(self) -> int:
        return len(self.stops)

    def check(self) -> None:
        """Raise ``FareTableMismatch`` if the snapshot is inconsistent."""
        if any(not stop or stop != stop.strip() for stop in self.stops):
            raise FareTableMismatch("Stop names must be non-empty and trimmed")
        if len(set(self.stops)) != len(self.stops):
            raise FareTableMismatch("Stop list contains duplicate names")
        if any(fare < 0 for fare in self.fares):
            raise FareTableMismatch("Fares must not be negative")
        _check_size(self.fares, self.size)

    def with_stop_inserted(
        self, name: str, position: Optional[int] = None
    ) -> Tuple["StopFareTable", Optional[int]]:
        stops, index = insert_stop(self.stops, name, position)
        if index is None:
            return self, None
        fares = resize_for_insert(self.fares, self.size, index)
        return StopFareTable(tuple(stops), tuple(fares)), index

    def with_stop_removed(self, name: str) -> Tuple["StopFareTable", Optional[int]]:
        stops, index = remove_stop(self.stops, name)
        if index is None:
            return self, None
        fares = resize_for_remove(self.fares, self.size, index)
        return StopFareTable(tuple(stops), tuple(fares)), index

    def with_bulk_stops(self, raw_text: str) -> Tuple["StopFareTable", List[str]]:
        stops, added = bulk_insert_stops(self.stops, raw_text)
        if not added:
            return self, added
        # Appending never moves existing pairs, so the old slots are a prefix.
        fares = list(self.fares) + [0] * (table_size(len(stops)) - len(self.fares))
        return StopFareTable(tuple(stops), tuple(fares)), added

    def with_fare(self, from_idx: int, to_idx: int, value) -> Tuple["StopFareTable", bool]:
        fares, applied = set_fare(self.fares, self.size, from_idx, to_idx, value)
        if not applied:
            return self, False
        return StopFareTable(self.stops, tuple(fares)), True

    def fare(self, from_idx: int, to_idx: int) -> Optional[int]:
        return get_fare(self.fares, self.size, from_idx, to_idx)

    def fare_between(self, from_name: str, to_name: str) -> Optional[int]:
        """Fare between two stops looked up by name."""
        try:
            from_idx = self.stops.index(from_name)
            to_idx = self.stops.index(to_name)
        except ValueError:
            return None
        return self.fare(from_idx, to_idx)

    def grid(self) -> List[Tuple[str, Dict[str, int]]]:
        """
        Rows of the "to \\ from" matrix shown in the admin UI.

        Row ``to`` lists the fares from each earlier stop.
        """
        rows = []
        for to_idx in range(1, self.size):
            row = {
                self.stops[from_idx]: self.fares[to_slot(from_idx, to_idx, self.size)]
                for from_idx in range(to_idx)
            }
            rows.append((self.stops[to_idx], row))
        return rows


@dataclass(frozen=True)
class EditOutcome:
    """Result of one editing intent against a ``RouteFares`` snapshot."""
    route: "RouteFares"
    applied: bool
    warning: Optional[str] = None
    index: Optional[int] = None


def _rejected(route: "RouteFares", warning: str) -> EditOutcome:
    logger.debug("Edit rejected: %s", warning)
    return EditOutcome(route=route, applied=False, warning=warning)


@dataclass(frozen=True)
class RouteFares:
    """Immutable snapshot of a route and its per-service-class tables."""
    number: str
    name: str
    bus_types: Tuple[BusType, ...]
    tables: Mapping[BusType, StopFareTable] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def create(cls, number: str, name: str, bus_types: Iterable[BusType]) -> "RouteFares":
        """New route with an empty table for every selected service class."""
        selected = tuple(dict.fromkeys(BusType(t) for t in bus_types))
        tables = {bus_type: StopFareTable() for bus_type in selected}
        return cls(number, name, selected, MappingProxyType(tables))

    def table(self, bus_type: BusType) -> Optional[StopFareTable]:
        return self.tables.get(bus_type)

    def _replace_table(self, bus_type: BusType, table: StopFareTable) -> "RouteFares":
        tables = dict(self.tables)
        tables[bus_type] = table
        return RouteFares(self.number, self.name, self.bus_types, MappingProxyType(tables))

    def _table_or_warning(self, bus_type) -> Tuple[Optional[StopFareTable], Optional[str]]:
        try:
            bus_type = BusType(bus_type)
        except ValueError:
            return None, f"Unknown bus type {bus_type!r}"
        table = self.tables.get(bus_type)
        if table is None:
            return None, f"Route does not run {bus_type.value} buses"
        return table, None

    def check(self) -> None:
        """Raise ``FareTableMismatch`` if any table is out of step."""
        if set(self.tables) != set(self.bus_types):
            raise FareTableMismatch("Fare tables do not match the selected bus types")
        for bus_type, table in self.tables.items():
            try:
                table.check()
            except FareTableMismatch as e:
                raise FareTableMismatch(f"{bus_type.value}: {e.message}") from e

    def with_details(self, number: Optional[str] = None, name: Optional[str] = None) -> "RouteFares":
        return RouteFares(
            self.number if number is None else number.strip(),
            self.name if name is None else name.strip(),
            self.bus_types,
            self.tables,
        )

    def select_service_classes(self, bus_types: Iterable) -> EditOutcome:
        """
        Change the selected service classes.

        Newly selected classes start with empty tables, deselected ones lose
        their stops and fares, retained ones are untouched.
        """
        try:
            selected = tuple(dict.fromkeys(BusType(t) for t in bus_types))
        except ValueError as e:
            return _rejected(self, str(e))
        if not selected:
            return _rejected(self, "A route needs at least one bus type")

        tables = {
            bus_type: self.tables.get(bus_type, StopFareTable())
            for bus_type in selected
        }
        route = RouteFares(self.number, self.name, selected, MappingProxyType(tables))
        return EditOutcome(route=route, applied=True)

    def insert_stop(self, bus_type, name: str, position: Optional[int] = None) -> EditOutcome:
        table, warning = self._table_or_warning(bus_type)
        if table is None:
            return _rejected(self, warning)
        if not (name or "").strip():
            return _rejected(self, "Stop name must not be empty")

        updated, index = table.with_stop_inserted(name, position)
        if index is None:
            return _rejected(self, f"Stop {name.strip()!r} already exists")
        return EditOutcome(route=self._replace_table(BusType(bus_type), updated), applied=True, index=index)

    def remove_stop(self, bus_type, name: str) -> EditOutcome:
        table, warning = self._table_or_warning(bus_type)
        if table is None:
            return _rejected(self, warning)

        updated, index = table.with_stop_removed(name)
        if index is None:
            return _rejected(self, f"Stop {name!r} not found")
        return EditOutcome(route=self._replace_table(BusType(bus_type), updated), applied=True, index=index)

    def bulk_insert_stops(self, bus_type, raw_text: str) -> EditOutcome:
        table, warning = self._table_or_warning(bus_type)
        if table is None:
            return _rejected(self, warning)

        updated, added = table.with_bulk_stops(raw_text)
        if not added:
            return _rejected(self, "No new stops to add")
        skipped = len(split_stop_text(raw_text)) - len(added)
        warning = f"Skipped {skipped} duplicate stop(s)" if skipped else None
        return EditOutcome(
            route=self._replace_table(BusType(bus_type), updated),
            applied=True,
            warning=warning,
        )

    def set_fare(self, bus_type, from_idx: int, to_idx: int, value) -> EditOutcome:
        table, warning = self._table_or_warning(bus_type)
        if table is None:
            return _rejected(self, warning)

        updated, applied = table.with_fare(from_idx, to_idx, value)
        if not applied:
            return _rejected(
                self,
                f"No fare applies from stop {from_idx} to stop {to_idx} "
                f"with {table.size} stops",
            )
        return EditOutcome(route=self._replace_table(BusType(bus_type), updated), applied=True)

    # -- serialization -----------------------------------------------------

    def to_document(self) -> RouteDocument:
        """Transport shape: stop names and flat fare arrays per bus type."""
        return RouteDocument(
            number=self.number,
            name=self.name,
            bus_types=list(self.bus_types),
            locations={t: list(self.tables[t].stops) for t in self.bus_types},
            fare_matrix={t: list(self.tables[t].fares) for t in self.bus_types},
        )

    @classmethod
    def from_document(cls, document: RouteDocument) -> "RouteFares":
        """
        Build a snapshot from a transport document.

        Entries for bus types the route does not run are ignored and missing
        ones load empty. Raises ``FareTableMismatch`` if a fare array does not
        fit its stop list.
        """
        selected = tuple(dict.fromkeys(document.bus_types))
        tables = {}
        for bus_type in selected:
            stops = tuple(document.locations.get(bus_type, []))
            fares = tuple(document.fare_matrix.get(bus_type, []))
            if not stops and not fares:
                tables[bus_type] = StopFareTable()
                continue
            table = StopFareTable(stops, fares)
            try:
                table.check()
            except FareTableMismatch as e:
                raise FareTableMismatch(f"{bus_type.value}: {e.message}") from e
            tables[bus_type] = table
        return cls(document.number, document.name, selected, MappingProxyType(tables))
