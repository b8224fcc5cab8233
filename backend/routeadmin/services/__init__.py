"""Services package for the route administration system."""

from .fare_matrix import (
    EditOutcome,
    RouteFares,
    StopFareTable,
)
from .route_editor import (
    RouteEditor,
    RouteRepositoryInterface,
    SaveResult,
)

__all__ = [
    'EditOutcome',
    'RouteFares',
    'StopFareTable',
    'RouteEditor',
    'RouteRepositoryInterface',
    'SaveResult',
]
