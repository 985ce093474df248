# geo/geometry.py
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from osm_move.domain.entities.osm import Node
from osm_move.geo.projection import Projection
from osm_move.geo.vector import Loc, Vec, vec_cross, vec_interp, vec_subtract


@dataclass(frozen=True)
class Edge:
    index: int  # insertion index: the edge runs between nodes[index - 1] and nodes[index]
    distance: float  # projected units
    loc: Loc  # nearest point, geographic


def angle(a: Node, b: Node, projection: Projection) -> float:
    """Direction (radians) of the projected vector a -> b."""
    pa, pb = projection(a.loc), projection(b.loc)
    return math.atan2(pb[1] - pa[1], pb[0] - pa[0])


def path_length(points: Sequence[Vec]) -> float:
    if len(points) < 2:
        return 0.0
    d = np.diff(np.asarray(points, dtype=float), axis=0)
    return float(np.hypot(d[:, 0], d[:, 1]).sum())


def line_intersection(a: Sequence[Vec], b: Sequence[Vec]) -> Vec | None:
    """
    Crossing point of segments a=(p, p2) and b=(q, q2), or None.
    Parallel segments and crossings at q on the supporting line of a yield None.
    """
    p, p2 = a
    q, q2 = b
    r = vec_subtract(p2, p)
    s = vec_subtract(q2, q)
    u_num = vec_cross(vec_subtract(q, p), r)
    denom = vec_cross(r, s)
    if u_num and denom:
        u = u_num / denom
        t = vec_cross(vec_subtract(q, p), s) / denom
        if 0 <= t <= 1 and 0 <= u <= 1:
            return vec_interp(p, p2, t)
    return None


def path_intersections(path1: Sequence[Vec], path2: Sequence[Vec]) -> list[Vec]:
    hits = []
    for i in range(len(path1) - 1):
        for j in range(len(path2) - 1):
            hit = line_intersection((path1[i], path1[i + 1]), (path2[j], path2[j + 1]))
            if hit is not None:
                hits.append(hit)
    return hits


def choose_edge(nodes: Sequence[Node], point: Vec, projection: Projection) -> Edge | None:
    """Nearest point to `point` on the polyline through `nodes`; None without any edge."""
    if len(nodes) < 2:
        return None
    pts = np.array([projection(n.loc) for n in nodes], dtype=float)
    o, s = pts[:-1], np.diff(pts, axis=0)
    v = np.asarray(point, dtype=float) - o
    ss = (s * s).sum(axis=1)
    t = np.divide((v * s).sum(axis=1), ss, out=np.zeros_like(ss), where=ss > 0)
    near = np.where(t[:, None] <= 0, o, np.where(t[:, None] >= 1, pts[1:], o + t[:, None] * s))
    dist = np.hypot(near[:, 0] - point[0], near[:, 1] - point[1])
    i = int(np.argmin(dist))  # first minimum wins on ties
    p = (float(near[i, 0]), float(near[i, 1]))
    return Edge(index=i + 1, distance=float(dist[i]), loc=projection.invert(p))
