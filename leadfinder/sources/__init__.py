"""Business search providers."""

from ..config import MissionConfig
from ..errors import ConfigurationError
from .base import BusinessSource, city_from_address
from .google_places import GooglePlacesSource
from .json_file import JsonFileSource


def get_source(config: MissionConfig) -> BusinessSource:
    """Build the provider named by the config."""
    if config.provider == GooglePlacesSource.name:
        return GooglePlacesSource(config.places_api_key or "")
    if config.provider == JsonFileSource.name:
        return JsonFileSource(config.source_file)
    raise ConfigurationError(f"Unknown business source provider: {config.provider}")


__all__ = [
    "BusinessSource",
    "GooglePlacesSource",
    "JsonFileSource",
    "city_from_address",
    "get_source",
]
