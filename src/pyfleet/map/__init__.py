"""Map presentation: widget capability, icons and the store-to-map adapter."""

from pyfleet.map.adapter import AdapterState, MapAdapter
from pyfleet.map.icons import MarkerIcon, marker_icon
from pyfleet.map.widget import Bounds, LatLng, MapTheme, MapWidget

__all__ = [
    "AdapterState",
    "Bounds",
    "LatLng",
    "MapAdapter",
    "MapTheme",
    "MapWidget",
    "MarkerIcon",
    "marker_icon",
]
