"""Shared Pydantic building blocks. Payloads use camelCase on the wire."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .shared.validators import validate_url


class APIModel(BaseModel):
    """Response schema base: reads ORM objects, dumps camelCase JSON."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class APIRequest(BaseModel):
    """Request schema base: accepts camelCase (or snake_case) keys, rejects unknown ones."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


class Coordinates(APIRequest):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(APIRequest):
    city: str
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    meeting_point: Optional[str] = None


class TimeSlot(APIRequest):
    start: str
    end: str


def url_list(values: Optional[list[str]]) -> Optional[list[str]]:
    if values is None:
        return values
    return [validate_url(v) for v in values]


def location_dict(location: Optional[Location]) -> Optional[dict[str, Any]]:
    """Stored shape of a location sub-document (camelCase keys)."""
    if location is None:
        return None
    return location.model_dump(by_alias=True, exclude_none=True)
