from pydantic import BaseModel
from typing import Optional
from app.schemas.common import Location


class GeocodeResult(BaseModel):
    """Result of geocoding an address"""
    address: str
    full_address: str
    coordinates: Location
    quality_score: Optional[float] = None  # 0-1, confidence in geocoding
    # True when the coordinates are synthetic rather than geocoded
    is_fallback: bool = False
