"""Map widget capability.

The rendering engine is external; the adapter only needs the
operations declared here. Handles returned by ``add_*`` are opaque to
the adapter and only ever passed back to the same widget.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import Any, NamedTuple, Protocol

from pyfleet.map.icons import MarkerIcon
from pyfleet.trajectory import TrajectoryStyle


class LatLng(NamedTuple):
    latitude: float
    longitude: float


class Bounds(NamedTuple):
    """Axis-aligned bounding box in degrees."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> Bounds:
        lats: list[float] = []
        lngs: list[float] = []
        for latitude, longitude in points:
            lats.append(latitude)
            lngs.append(longitude)
        if not lats:
            raise ValueError("cannot bound an empty point set")
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

    @property
    def center(self) -> LatLng:
        return LatLng((self.south + self.north) / 2, (self.west + self.east) / 2)

    @property
    def is_point(self) -> bool:
        return self.south == self.north and self.west == self.east

    def contains(self, point: tuple[float, float]) -> bool:
        latitude, longitude = point
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east


class MapTheme(StrEnum):
    LIGHT = "light"
    DARK = "dark"


class MapWidget(Protocol):
    """Operations the adapter needs from a concrete map engine.

    Widgets may additionally implement ``update_marker(handle, position,
    icon)`` and ``update_polyline(handle, points, style)``; the adapter
    then updates primitives in place instead of removing and recreating
    them.
    """

    def create(self, container: str, *, center: LatLng, zoom: int) -> None: ...

    def set_base_layer(self, url: str, *, theme: MapTheme) -> None: ...

    def add_marker(self, position: LatLng, icon: MarkerIcon, *, on_click: Callable[[], Any]) -> Any: ...

    def remove_marker(self, handle: Any) -> None: ...

    def add_polyline(self, points: Sequence[LatLng], style: TrajectoryStyle) -> Any: ...

    def remove_polyline(self, handle: Any) -> None: ...

    def fly_to(self, center: LatLng, zoom: int, *, duration: float) -> None: ...

    def fit_bounds(self, bounds: Bounds, *, padding: int) -> None: ...

    def dispose(self) -> None: ...
