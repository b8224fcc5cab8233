"""Editing session for a single route: user intents, load and save."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from routeadmin.errors import (
    AuthenticationError,
    FareTableMismatch,
    PersistenceError,
    RouteNotFoundError,
)
from routeadmin.models import BusType, RouteDocument
from routeadmin.services.fare_matrix import EditOutcome, RouteFares

logger = logging.getLogger(__name__)


@runtime_checkable
class RouteRepositoryInterface(Protocol):
    """
    Storage contract the editor relies on.
    ``DatabaseManager`` implements it; tests may pass any object that does.
    """

    def load_route(self, route_id: int) -> Optional[RouteDocument]:
        """Return the stored document, or None if there is no such route."""
        ...

    def save_route(self, document: RouteDocument, route_id: Optional[int] = None) -> int:
        """Persist the whole document and return its id. Raises PersistenceError."""
        ...


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    route_id: Optional[int] = None
    reason: Optional[str] = None


class RouteEditor:
    """
    Holds the in-memory snapshot of one route while it is being edited.

    Every intent is applied to a fresh ``RouteFares`` snapshot; a rejected
    intent or a failed save leaves the current snapshot as it was.
    """

    def __init__(
        self,
        repository: RouteRepositoryInterface,
        route: RouteFares,
        route_id: Optional[int] = None,
        is_authenticated: Callable[[], bool] = lambda: False,
    ):
        self.repository = repository
        self.route = route
        self.route_id = route_id
        self.is_authenticated = is_authenticated

    @classmethod
    def open(
        cls,
        repository: RouteRepositoryInterface,
        route_id: int,
        is_authenticated: Callable[[], bool],
    ) -> "RouteEditor":
        """
        Load a stored route for editing.

        Raises:
            AuthenticationError: caller is not signed in
            RouteNotFoundError: no route with that id
            PersistenceError: the store could not be read
            FareTableMismatch: the stored document is inconsistent
        """
        if not is_authenticated():
            raise AuthenticationError()
        document = repository.load_route(route_id)
        if document is None:
            raise RouteNotFoundError(route_id)
        return cls(repository, RouteFares.from_document(document), route_id, is_authenticated)

    @classmethod
    def new(
        cls,
        repository: RouteRepositoryInterface,
        number: str,
        name: str,
        bus_types: Iterable[BusType],
        is_authenticated: Callable[[], bool],
    ) -> "RouteEditor":
        """Start editing a route that has not been saved yet."""
        return cls(repository, RouteFares.create(number, name, bus_types), None, is_authenticated)

    def _apply(self, outcome: EditOutcome) -> EditOutcome:
        if outcome.applied:
            self.route = outcome.route
        return outcome

    def select_service_classes(self, bus_types: Iterable) -> EditOutcome:
        return self._apply(self.route.select_service_classes(bus_types))

    def insert_stop(self, bus_type, name: str, position: Optional[int] = None) -> EditOutcome:
        return self._apply(self.route.insert_stop(bus_type, name, position))

    def remove_stop(self, bus_type, name: str) -> EditOutcome:
        return self._apply(self.route.remove_stop(bus_type, name))

    def bulk_insert_stops(self, bus_type, raw_text: str) -> EditOutcome:
        return self._apply(self.route.bulk_insert_stops(bus_type, raw_text))

    def set_fare(self, bus_type, from_idx: int, to_idx: int, value) -> EditOutcome:
        return self._apply(self.route.set_fare(bus_type, from_idx, to_idx, value))

    def update_details(self, number: Optional[str] = None, name: Optional[str] = None) -> None:
        self.route = self.route.with_details(number, name)

    def replace(self, document: RouteDocument) -> None:
        """Swap in a whole document. Raises FareTableMismatch if it is inconsistent."""
        self.route = RouteFares.from_document(document)

    def request_save(self) -> SaveResult:
        """
        Persist the current snapshot.

        Inconsistent snapshots are never written. Failures are reported in the
        result and do not touch the in-memory route.
        """
        if not self.is_authenticated():
            return SaveResult(ok=False, route_id=self.route_id, reason="Not authenticated")

        try:
            self.route.check()
        except FareTableMismatch as e:
            logger.error("Refusing to save route %s: %s", self.route_id, e.message)
            return SaveResult(
                ok=False,
                route_id=self.route_id,
                reason=f"Route data is inconsistent: {e.message}",
            )

        try:
            route_id = self.repository.save_route(self.route.to_document(), self.route_id)
        except RouteNotFoundError as e:
            return SaveResult(ok=False, route_id=self.route_id, reason=e.message)
        except PersistenceError as e:
            logger.error("Saving route %s failed: %s", self.route_id, e.message)
            return SaveResult(ok=False, route_id=self.route_id, reason=e.message)

        self.route_id = route_id
        logger.info("Saved route %s (%s)", route_id, self.route.number)
        return SaveResult(ok=True, route_id=route_id)
