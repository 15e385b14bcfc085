from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts both snake_case and camelCase keys; emits camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DocumentModel(CamelModel):
    """
    Base for every stored document shape.

    Field names are snake_case in Python and camelCase in the stored field
    bag and on the wire. Unknown fields are kept so documents written by
    other clients round-trip untouched.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Location(BaseModel):
    lat: float = Field(..., description="Latitude", ge=-90, le=90)
    lng: float = Field(..., description="Longitude", ge=-180, le=180)


def location_dict(location) -> dict | None:
    """Serialize a Location (or an already plain dict) for storage."""
    if location is None:
        return None
    if isinstance(location, Location):
        return location.model_dump()
    return {"lat": location["lat"], "lng": location["lng"]}
