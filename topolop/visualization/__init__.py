from .mapper import CityMapper
from .models import Building, BuildingFlags, CityModel, District, Overlay, OverlayEntry

__all__ = [
    "Building",
    "BuildingFlags",
    "CityMapper",
    "CityModel",
    "District",
    "Overlay",
    "OverlayEntry",
]
