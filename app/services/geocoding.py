import random
from typing import Optional

import googlemaps

from app.core.exceptions import BackendUnavailableError
from app.core.logging_config import logger
from app.schemas.common import Location
from app.schemas.geocoding import GeocodeResult


class GeocodingService:
    """
    Google Maps Geocoding API integration service

    ``geocode`` reports "no match" as None and an unreachable API as
    ``BackendUnavailableError``. ``resolve`` never fails: it falls back to
    jittered coordinates around a configured default point.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        fallback_lat: float = 37.789,
        fallback_lng: float = -122.43,
        jitter: float = 0.005,
        rng: Optional[random.Random] = None,
        client=None,
    ):
        if client is not None:
            self.client = client
        elif api_key:
            self.client = googlemaps.Client(key=api_key)
            logger.info("Google Maps geocoding client initialized")
        else:
            self.client = None
            logger.warning("Google Maps API key not configured - geocoding disabled")
        self.fallback_lat = fallback_lat
        self.fallback_lng = fallback_lng
        self.jitter = jitter
        self.rng = rng or random.Random()

    def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Geocode a single address using Google Maps API
        
        Args:
            address: Address string to geocode
            
        Returns:
            GeocodeResult, or None when the address cannot be resolved
            
        Raises:
            BackendUnavailableError: If the API cannot be reached
        """
        if not self.client or not address or not address.strip():
            return None

        try:
            result = self.client.geocode(address)
        except (googlemaps.exceptions.TransportError, googlemaps.exceptions.Timeout) as e:
            logger.error(f"Google Maps unreachable for address '{address}': {str(e)}")
            raise BackendUnavailableError("Geocoding service unavailable") from e
        except googlemaps.exceptions.ApiError as e:
            logger.error(f"Google Maps API error for address '{address}': {str(e)}")
            return None

        if not result:
            return None

        # Get the first result (best match)
        location_data = result[0]
        geometry = location_data.get('geometry', {})
        location = geometry.get('location', {})
        lat = location.get('lat')
        lng = location.get('lng')

        if lat is None or lng is None or not self.validate_location(lat, lng):
            return None

        return GeocodeResult(
            address=address,
            full_address=location_data.get('formatted_address') or address,
            coordinates=Location(lat=lat, lng=lng),
            quality_score=self._calculate_quality_score(geometry.get('location_type', '')),
        )

    def fallback(self, address: str) -> GeocodeResult:
        """Synthetic coordinates near the default point."""
        return GeocodeResult(
            address=address,
            full_address=address,
            coordinates=Location(
                lat=self.fallback_lat + self.rng.uniform(-self.jitter, self.jitter),
                lng=self.fallback_lng + self.rng.uniform(-self.jitter, self.jitter),
            ),
            quality_score=0.0,
            is_fallback=True,
        )

    def resolve(self, address: str) -> GeocodeResult:
        """Geocode ``address``, substituting fallback coordinates on any failure."""
        try:
            result = self.geocode(address)
        except BackendUnavailableError:
            result = None
        if result is None:
            logger.info(f"Geocoding failed, using fallback coordinates for '{address}'")
            return self.fallback(address)
        return result

    def _calculate_quality_score(self, location_type: str) -> float:
        """
        Calculate quality score based on Google's location type
        
        Args:
            location_type: Google Maps location type
            
        Returns:
            Quality score from 0.0 to 1.0
        """
        quality_map = {
            'ROOFTOP': 1.0,  # Most precise
            'RANGE_INTERPOLATED': 0.8,
            'GEOMETRIC_CENTER': 0.5,
            'APPROXIMATE': 0.3
        }
        return quality_map.get(location_type, 0.5)
    
    def validate_location(self, lat: float, lng: float) -> bool:
        return -90 <= lat <= 90 and -180 <= lng <= 180
