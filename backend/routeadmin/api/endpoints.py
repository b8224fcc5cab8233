"""API endpoints for routes, stops and fares."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from routeadmin.config import settings
from routeadmin.database import AdminDB, DatabaseManager
from routeadmin.errors import (
    FareTableMismatch,
    InvalidRouteError,
    PersistenceError,
    RouteNotFoundError,
)
from routeadmin.models import (
    BulkStopsRequest,
    BusType,
    BusTypeSelection,
    FareGridResponse,
    FareGridRow,
    FareUpdateRequest,
    RouteDocument,
    RouteEditResponse,
    RouteOut,
    RouteSummary,
    StopInsertRequest,
)
from routeadmin.security import get_current_admin, get_db
from routeadmin.services import EditOutcome, RouteEditor, RouteFares

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Routes"])


def _route_out(editor: RouteEditor) -> RouteOut:
    document = editor.route.to_document()
    return RouteOut(id=editor.route_id, **document.model_dump())


def _open(route_id: int, db: DatabaseManager, admin: AdminDB) -> RouteEditor:
    return RouteEditor.open(db, route_id, lambda: admin is not None)


def _save(editor: RouteEditor) -> None:
    result = editor.request_save()
    if not result.ok:
        raise PersistenceError(result.reason)


def _commit(editor: RouteEditor, outcome: EditOutcome) -> RouteEditResponse:
    """Persist an applied intent and describe the outcome to the caller."""
    if outcome.applied:
        _save(editor)
    return RouteEditResponse(
        route=_route_out(editor),
        applied=outcome.applied,
        warning=outcome.warning,
        index=outcome.index,
    )


def _load_document(editor: RouteEditor, document: RouteDocument) -> None:
    try:
        editor.replace(document)
    except FareTableMismatch as e:
        raise InvalidRouteError(e.message) from e


@router.get("/routes", response_model=List[RouteSummary])
async def list_routes(
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """List all routes ordered by route number."""
    return db.list_routes()


@router.post("/routes", response_model=RouteOut, status_code=status.HTTP_201_CREATED)
async def create_route(
    document: RouteDocument,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """
    Create a route from a full document.

    Stops and fares may be supplied up front; each fare array must have
    ``n * (n - 1) / 2`` entries for its ``n`` stops.
    """
    editor = RouteEditor.new(
        db, document.number, document.name, document.bus_types, lambda: admin is not None
    )
    _load_document(editor, document)
    _save(editor)
    return _route_out(editor)


@router.get("/routes/{route_id}", response_model=RouteOut)
async def get_route(
    route_id: int,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    return _route_out(_open(route_id, db, admin))


@router.put("/routes/{route_id}", response_model=RouteOut)
async def replace_route(
    route_id: int,
    document: RouteDocument,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """Overwrite a route with a full document (last write wins)."""
    editor = _open(route_id, db, admin)
    _load_document(editor, document)
    _save(editor)
    return _route_out(editor)


@router.delete("/routes/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(
    route_id: int,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    if not db.delete_route(route_id):
        raise RouteNotFoundError(route_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/routes/{route_id}/bus-types", response_model=RouteEditResponse)
async def select_bus_types(
    route_id: int,
    selection: BusTypeSelection,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """
    Choose the service classes of a route.

    Deselecting a class drops its stops and fares.
    """
    editor = _open(route_id, db, admin)
    return _commit(editor, editor.select_service_classes(selection.bus_types))


@router.post("/routes/{route_id}/stops", response_model=RouteEditResponse)
async def insert_stop(
    route_id: int,
    request: StopInsertRequest,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    editor = _open(route_id, db, admin)
    outcome = editor.insert_stop(request.bus_type, request.name, request.position)
    return _commit(editor, outcome)


@router.post("/routes/{route_id}/stops/bulk", response_model=RouteEditResponse)
async def bulk_insert_stops(
    route_id: int,
    request: BulkStopsRequest,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """Append comma separated stops, skipping blanks and duplicates."""
    editor = _open(route_id, db, admin)
    return _commit(editor, editor.bulk_insert_stops(request.bus_type, request.text))


@router.delete("/routes/{route_id}/stops/{bus_type}/{name:path}", response_model=RouteEditResponse)
async def remove_stop(
    route_id: int,
    bus_type: BusType,
    name: str,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    editor = _open(route_id, db, admin)
    return _commit(editor, editor.remove_stop(bus_type, name))


@router.put("/routes/{route_id}/fares", response_model=RouteEditResponse)
async def set_fare(
    route_id: int,
    request: FareUpdateRequest,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """Set the fare from one stop to a later stop."""
    editor = _open(route_id, db, admin)
    outcome = editor.set_fare(
        request.bus_type, request.from_index, request.to_index, request.value
    )
    return _commit(editor, outcome)


@router.get("/routes/{route_id}/fares/{bus_type}", response_model=FareGridResponse)
async def get_fare_grid(
    route_id: int,
    bus_type: BusType,
    db: DatabaseManager = Depends(get_db),
    admin: AdminDB = Depends(get_current_admin),
):
    """Fare grid with one row per destination stop."""
    route: RouteFares = _open(route_id, db, admin).route
    table = route.table(bus_type)
    if table is None:
        raise HTTPException(
            status_code=404,
            detail=f"Route does not run {bus_type.value} buses",
        )
    return FareGridResponse(
        bus_type=bus_type,
        stops=list(table.stops),
        rows=[FareGridRow(to=to_stop, fares=fares) for to_stop, fares in table.grid()],
    )


@router.get("/health")
async def health_check(db: DatabaseManager = Depends(get_db)):
    """Health check endpoint including database status."""
    db_status = "healthy"
    try:
        route_count = db.count_routes()
    except Exception as e:
        logger.warning("Health check could not reach the datastore: %s", e)
        db_status = f"unhealthy: {str(e)}"
        route_count = 0

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "datastore_status": db_status,
        "route_count": route_count,
    }
