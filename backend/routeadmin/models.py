"""Models for the route administration system."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BusType(str, Enum):
    """Service classes a route can run under."""
    LUXURY = "Luxury"
    SEMI_LUXURY = "Semi-Luxury"
    EXPRESSWAY = "Expressway"
    AC = "AC"


class RouteDocument(BaseModel):
    """Persisted shape of one route, as exchanged with the admin frontend."""
    model_config = ConfigDict(populate_by_name=True)

    number: str = Field(..., description="Route number shown on the bus")
    name: str = Field(..., description="Route name")
    bus_types: List[BusType] = Field(
        ...,
        alias="busTypes",
        min_length=1,
        description="Service classes this route runs under",
    )
    locations: Dict[BusType, List[str]] = Field(
        default_factory=dict,
        description="Ordered stop names per service class",
    )
    fare_matrix: Dict[BusType, List[int]] = Field(
        default_factory=dict,
        alias="fareMatrix",
        description="Flat upper-triangular fare arrays per service class",
    )

    @field_validator("bus_types")
    @classmethod
    def validate_unique_bus_types(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("busTypes must not contain duplicates")
        return v

    @field_validator("locations")
    @classmethod
    def validate_stop_names(cls, v):
        cleaned = {}
        for bus_type, stops in v.items():
            names = [stop.strip() for stop in stops]
            if not all(names):
                raise ValueError(f"{bus_type.value}: stop names must not be empty")
            cleaned[bus_type] = names
        return cleaned

    @field_validator("fare_matrix")
    @classmethod
    def validate_fares(cls, v):
        for bus_type, fares in v.items():
            if any(fare < 0 for fare in fares):
                raise ValueError(f"{bus_type.value}: fares must not be negative")
        return v

    @field_validator("number", "name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class RouteOut(RouteDocument):
    """Route document together with its identifier."""
    id: int


class RouteSummary(BaseModel):
    """Short listing entry for a route."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    number: str
    name: str
    bus_types: List[BusType] = Field(..., alias="busTypes")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class BusTypeSelection(BaseModel):
    """Request to change the service classes of a route."""
    model_config = ConfigDict(populate_by_name=True)

    bus_types: List[BusType] = Field(..., alias="busTypes")


class StopInsertRequest(BaseModel):
    """Insert one stop, optionally at a given position."""
    model_config = ConfigDict(populate_by_name=True)

    bus_type: BusType = Field(..., alias="busType")
    name: str
    position: Optional[int] = Field(
        None, description="Index to insert at; appends when omitted"
    )


class BulkStopsRequest(BaseModel):
    """Append comma separated stops."""
    model_config = ConfigDict(populate_by_name=True)

    bus_type: BusType = Field(..., alias="busType")
    text: str = Field(..., description="Comma separated stop names")


class FareUpdateRequest(BaseModel):
    """Set the fare between two stops of one service class."""
    model_config = ConfigDict(populate_by_name=True)

    bus_type: BusType = Field(..., alias="busType")
    from_index: int = Field(..., alias="from")
    to_index: int = Field(..., alias="to")
    value: Optional[Union[int, float, str]] = Field(
        None, description="Fare; coerced to a non-negative integer"
    )


class RouteEditResponse(BaseModel):
    """Result of a single editing intent."""
    route: RouteOut
    applied: bool
    warning: Optional[str] = None
    index: Optional[int] = None


class FareGridRow(BaseModel):
    """One row of the "to \\ from" fare grid."""
    to: str
    fares: Dict[str, int]


class FareGridResponse(BaseModel):
    """Fare grid of one service class."""
    model_config = ConfigDict(populate_by_name=True)

    bus_type: BusType = Field(..., alias="busType")
    stops: List[str]
    rows: List[FareGridRow]


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class AdminInfo(BaseModel):
    id: int
    email: str


class LoginResponse(BaseModel):
    token: str
    admin: AdminInfo
