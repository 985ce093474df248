# geo/projection.py
import math
from typing import Protocol, runtime_checkable

from osm_move.geo.vector import Loc, Vec

TILE_SIZE = 256.0
MAX_LAT = 85.0511287798066  # web mercator clip latitude


@runtime_checkable
class Projection(Protocol):
    """
    Forward/inverse transform between geographic locations and planar points.
    Units of the planar space are projection specific (pixels for mercator).
    """

    def __call__(self, loc: Loc) -> Vec: ...
    def invert(self, point: Vec) -> Loc: ...


class MercatorProjection(Projection):
    """Spherical web mercator; y grows downward like screen coordinates."""

    def __init__(self, scale: float = TILE_SIZE / (2 * math.pi), translate: Vec = (0.0, 0.0)):
        self.k, self.tx, self.ty = scale, translate[0], translate[1]

    @classmethod
    def at_zoom(cls, zoom: float, translate: Vec = (0.0, 0.0)) -> "MercatorProjection":
        return cls(TILE_SIZE * 2**zoom / (2 * math.pi), translate)

    def __call__(self, loc: Loc) -> Vec:
        lam = math.radians(loc[0])
        phi = math.radians(max(-MAX_LAT, min(MAX_LAT, loc[1])))
        x = lam * self.k + self.tx
        y = -math.log(math.tan(math.pi / 4 + phi / 2)) * self.k + self.ty
        return (x, y)

    def invert(self, point: Vec) -> Loc:
        lam = (point[0] - self.tx) / self.k
        phi = 2 * math.atan(math.exp(-(point[1] - self.ty) / self.k)) - math.pi / 2
        return (math.degrees(lam), math.degrees(phi))


class IdentityProjection(Projection):
    """Planar passthrough, optionally scaled; handy for already-projected data."""

    def __init__(self, scale: float = 1.0, translate: Vec = (0.0, 0.0)):
        if scale == 0:
            raise ValueError("scale must be non-zero")
        self.k, self.tx, self.ty = scale, translate[0], translate[1]

    def __call__(self, loc: Loc) -> Vec:
        return (loc[0] * self.k + self.tx, loc[1] * self.k + self.ty)

    def invert(self, point: Vec) -> Loc:
        return ((point[0] - self.tx) / self.k, (point[1] - self.ty) / self.k)
