from typing import List, Optional

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging_config import logger
from app.crud.base import DocumentStore
from app.schemas.common import location_dict
from app.schemas.property import Property, PropertyCreate
from app.services.geocoding import GeocodingService

COLLECTION = "properties"


class PropertyService:
    """A host's properties. Exactly one is the main property once any exist."""

    def __init__(self, store: DocumentStore, geocoder: Optional[GeocodingService] = None):
        self.store = store
        self.geocoder = geocoder

    def get_properties(self, host_id: str) -> List[Property]:
        documents = self.store.query(COLLECTION, {"hostId": host_id})
        return [Property.model_validate(doc) for doc in documents]

    def get_property(self, host_id: str, property_id: str) -> Property:
        document = self.store.get(COLLECTION, property_id)
        if not document or document.get("hostId") != host_id:
            raise NotFoundError(f"Property {property_id} not found")
        return Property.model_validate(document)

    def add_property(self, host_id: str, property_data: PropertyCreate) -> Property:
        """
        Add a property; the host's first one becomes main.

        Coordinates are geocoded from the address when not supplied.

        Raises:
            ValidationError: If the address is blank
        """
        address = property_data.address.strip() if property_data.address else ""
        if not address:
            raise ValidationError("Address is required")

        coordinates = property_data.coordinates
        if coordinates is None and self.geocoder:
            coordinates = self.geocoder.resolve(address).coordinates

        fields = {
            "hostId": host_id,
            "address": address,
            "coordinates": location_dict(coordinates),
            "isMain": not self.get_properties(host_id),
        }
        if property_data.label:
            fields["label"] = property_data.label.strip()

        prop = Property.model_validate(self.store.create(COLLECTION, fields))
        logger.info(f"Property added: id={prop.id} host={host_id} main={prop.is_main}")
        return prop

    def set_main_property(self, host_id: str, property_id: str) -> Property:
        self.get_property(host_id, property_id)
        updates = {
            prop.id: {"isMain": prop.id == property_id}
            for prop in self.get_properties(host_id)
            if prop.is_main != (prop.id == property_id)
        }
        if updates:
            self.store.write_many(COLLECTION, updates)
        logger.info(f"Main property set: id={property_id} host={host_id}")
        return self.get_property(host_id, property_id)

    def delete_property(self, host_id: str, property_id: str) -> None:
        """Delete a property; a deleted main property hands main to the oldest remaining one."""
        prop = self.get_property(host_id, property_id)
        self.store.delete(COLLECTION, property_id)
        if prop.is_main:
            remaining = self.get_properties(host_id)
            if remaining:
                self.store.write(COLLECTION, remaining[0].id, {"isMain": True})
        logger.info(f"Property deleted: id={property_id} host={host_id}")
