import numpy as np
import pytest

from osm_move.actions.hooks import NoopHooks
from osm_move.actions.move import Intersection, MoveAction, MoveCache, untangle
from osm_move.domain.entities.osm import Node, Way
from osm_move.domain.graph import Graph
from osm_move.geo.geometry import line_intersection
from osm_move.geo.projection import IdentityProjection, MercatorProjection
from osm_move.geo.vector import vec_add, vec_subtract


def _graph(locs: dict, ways: dict) -> Graph:
    entities = [Node(nid, loc) for nid, loc in locs.items()]
    entities += [Way(wid, nodes) for wid, nodes in ways.items()]
    return Graph.from_entities(entities)


def _self_intersects(graph: Graph, way_id: str, projection) -> bool:
    pts = [projection(n.loc) for n in graph.child_nodes(graph.entity(way_id))]
    segs = list(zip(pts, pts[1:]))
    for i in range(len(segs)):
        for j in range(i + 2, len(segs)):
            if line_intersection(segs[i], segs[j]) is not None:
                return True
    return False


# --- test hook that records what the pipeline did ---
class TraceHooks(NoopHooks):
    def __init__(self):
        self.trace = []

    def cache_built(self, **_):
        self.trace.append("cache_built")

    def delta_limited(self, *, node_id, way_id, requested, limited):
        self.trace.append(("delta_limited", node_id, way_id, requested, limited))

    def placeholder_inserted(self, *, way_id, node_id, placeholder_id, index):
        self.trace.append(("placeholder_inserted", way_id, node_id))

    def vertex_reordered(self, *, way_id, node_id, old_index, new_index):
        self.trace.append(("vertex_reordered", way_id, node_id, old_index, new_index))

    def move_applied(self, **_):
        self.trace.append("move_applied")


# ---------- Fixtures


@pytest.fixture
def proj() -> IdentityProjection:
    return IdentityProjection()


@pytest.fixture
def tee() -> Graph:
    # a - b - c - d static, b - e attached above b
    return _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (2.0, 0.0), "d": (3.0, 0.0), "e": (1.0, 1.0)},
        {"w_static": ("a", "b", "c", "d"), "w_move": ("b", "e")},
    )


@pytest.fixture
def cross() -> Graph:
    # f - b - g crosses a - b - c at b; b is interior to both ways
    return _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (2.0, 0.0), "f": (1.0, -1.0), "g": (1.0, 1.0)},
        {"w_static": ("a", "b", "c"), "w_move": ("f", "b", "g")},
    )


# ---------- Basics


def test_zero_delta_returns_input_graph(tee: Graph, proj):
    action = MoveAction(["w_move"], (0, 0), proj)
    assert action(tee) is tee
    assert action.delta == (0.0, 0.0)


def test_translation_moves_every_movable_node(proj):
    g = _graph({"p": (0.0, 0.0), "q": (1.0, 0.0)}, {"w": ("p", "q")})
    out = MoveAction(["w"], (0.25, -0.5), proj)(g)
    assert out.entity("p").loc == pytest.approx((0.25, -0.5))
    assert out.entity("q").loc == pytest.approx((1.25, -0.5))
    assert g.entity("p").loc == (0.0, 0.0)


def test_translation_is_linear_under_mercator():
    proj = MercatorProjection.at_zoom(17)
    g = _graph(
        {"p": (13.40, 52.50), "q": (13.41, 52.51), "r": (13.42, 52.49)},
        {"w": ("p", "q", "r")},
    )
    d1, d2 = (12.0, -7.5), (-3.25, 40.0)
    stepwise = MoveAction(["w"], d2, proj)(MoveAction(["w"], d1, proj)(g))
    once = MoveAction(["w"], vec_add(d1, d2), proj)(g)
    for nid in ("p", "q", "r"):
        assert np.allclose(stepwise.entity(nid).loc, once.entity(nid).loc, rtol=0, atol=1e-9)


def test_cache_is_shared_between_proposals(tee: Graph, proj):
    hooks = TraceHooks()
    cache = MoveCache()
    MoveAction(["w_move"], (0.2, 0.3), proj, cache=cache, hooks=hooks)(tee)
    out = MoveAction(["w_move"], (0.4, 0.1), proj, cache=cache, hooks=hooks)(tee)
    assert hooks.trace.count("cache_built") == 1
    assert out.entity("e").loc == pytest.approx((1.4, 1.1))


# ---------- Delta limiting


def test_endpoint_cannot_be_dragged_through_static_way(tee: Graph, proj):
    hooks = TraceHooks()
    requested = (0.5, -0.5)
    action = MoveAction(["w_move"], requested, proj, hooks=hooks)
    out = action(tee)

    assert action.delta == pytest.approx((0.5, 0.0))
    assert ("delta_limited", "b", "w_static", requested, action.delta) in hooks.trace

    # limited endpoint lies on the static way, not beyond the crossing at (1.5, 0)
    start = proj(tee.entity("b").loc)
    direction = np.asarray(requested) / np.hypot(*requested)
    limited_end = vec_add(start, action.delta)
    crossing = (1.5, 0.0)
    assert np.dot(vec_subtract(limited_end, start), direction) <= (
        np.dot(vec_subtract(crossing, start), direction) + 1e-12
    )
    assert out.entity("b").loc == pytest.approx((1.5, 0.0))
    assert out.entity("e").loc == pytest.approx((1.5, 1.0))
    assert out.entity("w_static").nodes == ("a", "b", "c", "d")


def test_delta_not_limited_without_crossing(tee: Graph, proj):
    action = MoveAction(["w_move"], (0.5, 0.5), proj)
    action(tee)
    assert action.delta == (0.5, 0.5)


# ---------- Shape preservation


def test_straight_way_gets_no_placeholder(proj):
    g = _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (2.0, 0.0), "e": (1.0, 1.0)},
        {"w_static": ("a", "b", "c"), "w_move": ("b", "e")},
    )
    out = MoveAction(["w_move"], (0.5, 0.5), proj)(g)
    assert len(out) == len(g)
    assert out.entity("w_static").nodes == ("a", "b", "c")
    # shared vertex snapped back onto the static way
    assert out.entity("b").loc == pytest.approx((1.5, 0.0))
    assert out.entity("e").loc == pytest.approx((1.5, 1.5))


def test_bent_way_gets_one_placeholder_at_old_location(proj):
    g = _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (1.0, 1.0), "e": (2.0, -1.0)},
        {"w_static": ("a", "b", "c"), "w_move": ("b", "e")},
    )
    action = MoveAction(["w_move"], (0.5, -0.5), proj)
    out = action(g)

    new_ids = {e.id for e in out} - {e.id for e in g}
    assert len(new_ids) == 1
    (pid,) = new_ids
    assert pid == action.cache.replaced_vertex["w_static_b"].id
    assert out.entity(pid).loc == pytest.approx((1.0, 0.0))
    assert action.cache.start_loc[pid] == (1.0, 0.0)
    assert out.entity("w_static").nodes == ("a", "b", pid, "c")
    assert out.entity("w_move").nodes == ("b", "e")


def test_placeholder_id_is_stable_across_proposals(proj):
    g = _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (1.0, 1.0), "e": (2.0, -1.0)},
        {"w_static": ("a", "b", "c"), "w_move": ("b", "e")},
    )
    cache = MoveCache()
    out1 = MoveAction(["w_move"], (0.5, -0.5), proj, cache=cache)(g)
    out2 = MoveAction(["w_move"], (0.6, -0.7), proj, cache=cache)(g)
    assert {e.id for e in out1} == {e.id for e in out2}


# ---------- Untangling


def test_zorro_is_reordered(proj):
    g = _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (2.0, 0.0), "d": (4.0, 0.0), "e": (1.0, -1.0)},
        {"w_static": ("a", "b", "c", "d"), "w_move": ("b", "e")},
    )
    hooks = TraceHooks()
    out = MoveAction(["w_move"], (2.0, 0.0), proj, hooks=hooks)(g)

    assert out.entity("w_static").nodes == ("a", "c", "b", "d")
    assert out.entity("w_move").nodes == ("b", "e")
    assert out.entity("b").loc == pytest.approx((3.0, 0.0))
    assert out.entity("e").loc == pytest.approx((3.0, -1.0))
    assert hooks.trace == [
        "cache_built",
        ("vertex_reordered", "w_static", "b", 1, 2),
        "move_applied",
    ]
    assert not _self_intersects(out, "w_static", proj)


def test_untangle_converges_for_interior_vertex(cross: Graph, proj):
    action = MoveAction(["w_move"], (0.3, 0.2), proj)
    out = action(cross)
    (obj,) = action.cache.intersections
    assert not obj.moved_is_endpoint and not obj.unmoved_is_endpoint

    locs = [out.entity("b").loc]
    g = out
    for _ in range(2):
        g = untangle(obj, g, proj)
        locs.append(g.entity("b").loc)

    steps = [np.hypot(*vec_subtract(p, q)) for p, q in zip(locs, locs[1:])]
    assert steps[1] < 1e-6
    assert steps[0] > steps[1]
    assert locs[-1] == pytest.approx((1.3, 0.0), abs=1e-5)
    assert g.entity("w_static").nodes == ("a", "b", "c")
    assert g.entity("w_move").nodes == ("f", "b", "g")


def test_moving_ring_stays_closed_when_first_vertex_is_reordered(proj):
    # ring b-e-f-b hangs off the static way at its first vertex b
    g = _graph(
        {"a": (0.0, 0.0), "b": (1.0, 0.0), "c": (2.0, 0.0), "e": (2.0, 1.0), "f": (0.0, 1.0)},
        {"w_static": ("a", "b", "c"), "ring": ("b", "e", "f", "b")},
    )
    hooks = TraceHooks()
    action = MoveAction(["ring"], (0.5, 0.5), proj, hooks=hooks)
    out = action(g)

    assert action.cache.intersections == [Intersection("b", "ring", "w_static", False, False)]
    assert action.delta == (0.5, 0.5)

    new_ids = {e.id for e in out} - {e.id for e in g}
    assert len(new_ids) == 1
    (pid,) = new_ids
    assert pid == action.cache.replaced_vertex["ring_b"].id
    assert out.entity(pid).loc == pytest.approx((1.5, 0.5))

    ring = out.entity("ring")
    assert ring.is_closed()
    assert ring.nodes == ("e", "f", "b", pid, "e")
    assert out.entity("w_static").nodes == ("a", "b", "c")
    # halfway between the ring's placeholder corner and the static way
    assert out.entity("b").loc == pytest.approx((1.5, 0.25))
    assert hooks.trace == [
        "cache_built",
        ("placeholder_inserted", "ring", "b"),
        ("vertex_reordered", "ring", "b", 0, 2),
        "move_applied",
    ]


# ---------- End to end


def test_end_to_end_tee(tee: Graph, proj):
    action = MoveAction(["w_move"], (0.2, 0.3), proj)
    out = action(tee)

    assert action.cache.intersections == [Intersection("b", "w_move", "w_static", True, False)]
    assert action.delta == (0.2, 0.3)
    assert out.entity("e").loc == pytest.approx((1.2, 1.3))
    assert out.entity("b").loc == pytest.approx((1.2, 0.0))
    assert not _self_intersects(out, "w_static", proj)
    # untouched nodes keep their identity
    assert out.entity("a") is tee.entity("a")


def test_end_to_end_mercator():
    proj = MercatorProjection.at_zoom(17)
    g = _graph(
        {
            "a": (13.400, 52.5),
            "b": (13.401, 52.5),
            "c": (13.402, 52.5),
            "d": (13.403, 52.5),
            "e": (13.401, 52.501),
        },
        {"w_static": ("a", "b", "c", "d"), "w_move": ("b", "e")},
    )
    delta = (4.0, -5.0)  # pixels; up and to the right, away from the static way
    action = MoveAction(["w_move"], delta, proj)
    out = action(g)

    assert action.delta == delta
    assert proj(out.entity("e").loc) == pytest.approx(vec_add(proj(g.entity("e").loc), delta))
    pb = proj(g.entity("b").loc)
    assert proj(out.entity("b").loc) == pytest.approx((pb[0] + 4.0, pb[1]), abs=1e-6)
    assert out.entity("w_static").nodes == ("a", "b", "c", "d")
    assert not _self_intersects(out, "w_static", proj)
