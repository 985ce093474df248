# runtime/registries.py
from collections.abc import Callable

from osm_move.config.models import (
    ProjectionIdentityModel,
    ProjectionMercatorModel,
    ProjectionUnion,
)
from osm_move.geo.projection import IdentityProjection, MercatorProjection, Projection

ProjectionFactory = Callable[[ProjectionUnion], Projection]

_projection_registry: dict[str, ProjectionFactory] = {}


def register_projection(kind: str):
    def deco(fn: ProjectionFactory):
        _projection_registry[kind] = fn
        return fn

    return deco


def make_projection(cfg: ProjectionUnion) -> Projection:
    try:
        factory = _projection_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown projection kind {cfg.kind!r}")
    return factory(cfg)


@register_projection("mercator")
def _make_mercator(cfg: ProjectionMercatorModel):
    return MercatorProjection.at_zoom(cfg.zoom, cfg.translate)


@register_projection("identity")
def _make_identity(cfg: ProjectionIdentityModel):
    return IdentityProjection(cfg.scale, cfg.translate)
