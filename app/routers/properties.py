from fastapi import APIRouter, Depends, status
from typing import List
from app.core.logging_config import logger
from app.dependencies import get_property_service, require_roles
from app.schemas.property import Property, PropertyCreate
from app.schemas.user import Actor, UserRole
from app.services.property import PropertyService

router = APIRouter()


@router.post("", response_model=Property, status_code=status.HTTP_201_CREATED)
def add_property(
    property_data: PropertyCreate,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: PropertyService = Depends(get_property_service),
):
    try:
        logger.info(f"Adding property: host={host.uid}")
        return service.add_property(host.uid, property_data)
    except Exception as e:
        logger.error(f"Error adding property: {type(e).__name__}: {str(e)}")
        raise


@router.get("", response_model=List[Property])
def get_properties(
    host: Actor = Depends(require_roles(UserRole.host)),
    service: PropertyService = Depends(get_property_service),
):
    return service.get_properties(host.uid)


@router.put("/{property_id}/main", response_model=Property)
def set_main_property(
    property_id: str,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: PropertyService = Depends(get_property_service),
):
    return service.set_main_property(host.uid, property_id)


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_property(
    property_id: str,
    host: Actor = Depends(require_roles(UserRole.host)),
    service: PropertyService = Depends(get_property_service),
):
    try:
        logger.info(f"Deleting property: id={property_id} host={host.uid}")
        service.delete_property(host.uid, property_id)
    except Exception as e:
        logger.error(f"Error deleting property {property_id}: {type(e).__name__}: {str(e)}")
        raise
