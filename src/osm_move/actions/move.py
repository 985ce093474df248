# actions/move.py
"""
Move a selection of nodes, ways and relations by a planar offset.

Pipeline: build the cache (what moves, where moving ways meet stationary
ones), limit the offset so a moving endpoint cannot cross a stationary way,
translate, then repair every intersection: keep each way's former shape with a
placeholder vertex and reorder the shared vertex so the ways do not zig-zag
across each other.

    Start:                way1.nodes: b,e         (moving)
    a - b - c ----- d     way2.nodes: a,b,c,d     (static)
        |                 vertex: b
        e

    way1 `b,e` moved here:
    a ----- c = b - d
                |
                e

    reorder nodes         way1.nodes: b,e
    a ----- c - b - d     way2.nodes: a,c,b,d
                |
                e
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from osm_move.actions.hooks import MoveHooks, NoopHooks
from osm_move.config.models import MoveModel
from osm_move.domain.entities.osm import Node, Relation, Way
from osm_move.domain.graph import Graph
from osm_move.geo.geometry import angle, choose_edge, path_intersections, path_length
from osm_move.geo.projection import Projection
from osm_move.geo.vector import Loc, Vec, vec_add, vec_equals, vec_interp, vec_subtract

DEFAULTS = MoveModel()


@dataclass(frozen=True)
class Intersection:
    node_id: str
    moved_id: str
    unmoved_id: str
    moved_is_endpoint: bool
    unmoved_is_endpoint: bool


@dataclass
class MoveCache:
    """
    Selection-scoped state of a move. Reuse it across delta proposals on the
    same topology (drag previews); call `invalidate` once the topology changes.
    """

    moving: set[str] = field(default_factory=set)
    nodes: list[str] = field(default_factory=list)
    ways: list[str] = field(default_factory=list)
    intersections: list[Intersection] = field(default_factory=list)
    start_loc: dict[str, Loc] = field(default_factory=dict)
    replaced_vertex: dict[str, Node] = field(default_factory=dict)  # "wayId_nodeId" -> placeholder
    root_ids: tuple[str, ...] = ()
    ok: bool = False

    def invalidate(self) -> None:
        self.ok = False

    def reset(self, root_ids: tuple[str, ...]) -> None:
        self.moving, self.nodes, self.ways, self.intersections = set(), [], [], []
        self.start_loc, self.replaced_vertex = {}, {}
        self.root_ids, self.ok = root_ids, False


# ------------------- Cache builder ---------------------------


def _is_endpoint(way: Way, node_id: str) -> bool:
    return not way.is_closed() and way.affix(node_id) is not None


def _cache_entities(graph: Graph, ids: Iterable[str], cache: MoveCache) -> None:
    # depth-first, same visiting order as a recursive walk; `moving` is the visited set
    stack = [iter(ids)]
    while stack:
        eid = next(stack[-1], None)
        if eid is None:
            stack.pop()
            continue
        if eid in cache.moving:
            continue
        cache.moving.add(eid)

        entity = graph.has_entity(eid)
        if entity is None:
            continue
        if isinstance(entity, Node):
            cache.nodes.append(eid)
            cache.start_loc[eid] = entity.loc
        elif isinstance(entity, Way):
            cache.ways.append(eid)
            stack.append(iter(entity.nodes))
        elif isinstance(entity, Relation):
            stack.append(iter([m.id for m in entity.members]))


def _cache_intersections(graph: Graph, cache: MoveCache, settings: MoveModel) -> None:
    # only intersections between exactly 1 moved and 1 unmoved way
    for way_id in cache.ways:
        moved = graph.entity(way_id)
        seen: set[str] = set()
        for node in graph.child_nodes(moved):
            if node.id in seen:
                continue
            seen.add(node.id)

            parents = graph.parent_ways(node)
            if len(parents) != 2:
                continue
            unmoved = next((w for w in parents if w.id not in cache.moving), None)
            if unmoved is None:
                continue

            # overly connected ways can't be untangled
            if len(set(moved.nodes) & set(unmoved.nodes)) > settings.max_shared_nodes:
                continue
            if moved.is_area() or unmoved.is_area():
                continue

            cache.intersections.append(
                Intersection(
                    node_id=node.id,
                    moved_id=moved.id,
                    unmoved_id=unmoved.id,
                    moved_is_endpoint=_is_endpoint(moved, node.id),
                    unmoved_is_endpoint=_is_endpoint(unmoved, node.id),
                )
            )


def _can_move(
    graph: Graph, node_id: str, roots: set[str], cache: MoveCache, settings: MoveModel
) -> bool:
    if node_id in roots:
        return True
    parents = [w.id for w in graph.parent_ways(graph.entity(node_id))]
    if len(parents) < settings.junction_ways:
        return True
    # a junction only moves along with every way meeting there
    parents_moving = all(wid in cache.moving for wid in parents)
    if not parents_moving:
        cache.moving.discard(node_id)
    return parents_moving


def build_cache(
    graph: Graph,
    root_ids: Iterable[str],
    cache: MoveCache | None = None,
    settings: MoveModel | None = None,
    hooks: MoveHooks | None = None,
) -> MoveCache:
    settings = settings or DEFAULTS
    hooks = hooks or NoopHooks()
    roots = tuple(root_ids)
    cache = cache if cache is not None else MoveCache()
    if cache.ok and cache.root_ids == roots:
        return cache

    cache.reset(roots)
    _cache_entities(graph, roots, cache)
    _cache_intersections(graph, cache, settings)
    root_set = set(roots)
    cache.nodes = [nid for nid in cache.nodes if _can_move(graph, nid, root_set, cache, settings)]
    cache.ok = True

    hooks.cache_built(
        roots=roots,
        moving=cache.moving,
        nodes=cache.nodes,
        ways=cache.ways,
        intersections=cache.intersections,
    )
    return cache


# ------------------- Delta limiter ---------------------------


def limit_delta(
    graph: Graph,
    cache: MoveCache,
    delta: Vec,
    projection: Projection,
    settings: MoveModel | None = None,
    hooks: MoveHooks | None = None,
) -> Vec:
    """Shrink `delta` so no moving way endpoint is dragged through a stationary way."""
    settings = settings or DEFAULTS
    hooks = hooks or NoopHooks()

    for obj in cache.intersections:
        # only a moving endpoint can slide across; a vertex joining 2 endpoints is free
        if not obj.moved_is_endpoint or obj.unmoved_is_endpoint:
            continue

        node = graph.entity(obj.node_id)
        start = projection(node.loc)
        end = vec_add(start, delta)
        moved_path = [
            vec_add(projection(n.loc), delta)
            for n in graph.child_nodes(graph.entity(obj.moved_id))
        ]
        unmoved_nodes = graph.child_nodes(graph.entity(obj.unmoved_id))
        unmoved_path = [projection(n.loc) for n in unmoved_nodes]

        for hit in path_intersections(moved_path, unmoved_path):
            if vec_equals(hit, end, settings.hit_epsilon):
                continue
            edge = choose_edge(unmoved_nodes, end, projection)
            limited = vec_subtract(projection(edge.loc), start)
            hooks.delta_limited(
                node_id=obj.node_id, way_id=obj.unmoved_id, requested=delta, limited=limited
            )
            delta = limited
            break

    return delta


# ------------------- Translator ---------------------------


def translate(graph: Graph, cache: MoveCache, delta: Vec, projection: Projection) -> Graph:
    for node_id in cache.nodes:
        node = graph.entity(node_id)
        end = vec_add(projection(node.loc), delta)
        graph = graph.replace(node.move(projection.invert(end)))
    return graph


# ------------------- Shape preserver ---------------------------


def preserve_vertex(
    node_id: str,
    way_id: str,
    graph: Graph,
    delta: Vec | None,
    cache: MoveCache,
    projection: Projection,
    settings: MoveModel | None = None,
    hooks: MoveHooks | None = None,
) -> Graph:
    """
    Place a vertex where the moved vertex used to be, to keep the shape of `way_id`.

    With `delta`, the placeholder goes to the pre-move location shifted by
    `delta` (shape of the moving way); without, to the pre-move location itself.
    Nothing is inserted at a way's end or where the placeholder would only
    continue a straight line.
    """
    settings = settings or DEFAULTS
    hooks = hooks or NoopHooks()
    way = graph.entity(way_id)
    moved = graph.entity(node_id)
    moved_index = way.nodes.index(node_id)

    if way.is_closed():
        n = len(way.nodes) - 1
        prev_index = (moved_index + n - 1) % n
        next_index = (moved_index + n + 1) % n
    else:
        n = len(way.nodes)
        prev_index, next_index = moved_index - 1, moved_index + 1
        if prev_index < 0 or next_index >= n:
            return graph

    prev = graph.has_entity(way.nodes[prev_index])
    nxt = graph.has_entity(way.nodes[next_index])
    if prev is None or nxt is None:
        return graph

    key = f"{way_id}_{node_id}"
    orig = cache.replaced_vertex.get(key)
    if orig is None:
        orig = Node.create(cache.start_loc[node_id])
        cache.replaced_vertex[key] = orig
        cache.start_loc[orig.id] = cache.start_loc[node_id]

    if delta is not None:
        start = projection(cache.start_loc[node_id])
        end = projection.invert(vec_add(start, delta))
    else:
        end = cache.start_loc[node_id]
    orig = orig.move(end)

    turn = abs(angle(orig, prev, projection) - angle(orig, nxt, projection)) * 180 / math.pi
    if abs(turn - 180) < settings.straight_tolerance_deg:
        return graph

    # moving forward or backward along the way?
    d1 = path_length([projection(x.loc) for x in (prev, orig, moved, nxt)])
    d2 = path_length([projection(x.loc) for x in (prev, moved, orig, nxt)])
    insert_at = moved_index if d1 <= d2 else next_index
    if way.is_closed() and insert_at == 0:
        insert_at = n  # around the loop

    way = way.add_node(orig.id, insert_at)
    hooks.placeholder_inserted(
        way_id=way_id, node_id=node_id, placeholder_id=orig.id, index=insert_at
    )
    return graph.replace(orig).replace(way)


# ------------------- Intersection untangler ---------------------------


def _nodes_without(graph: Graph, way: Way, vertex_id: str) -> list[Node]:
    nodes = [n for n in graph.child_nodes(way) if n.id != vertex_id]
    if way.is_closed() and way.first() == vertex_id and nodes:
        nodes.append(nodes[0])
    return nodes


def untangle(
    intersection: Intersection,
    graph: Graph,
    projection: Projection,
    settings: MoveModel | None = None,
    hooks: MoveHooks | None = None,
) -> Graph:
    """Snap the shared vertex back onto the ways it joins and reorder away any zorro."""
    settings = settings or DEFAULTS
    hooks = hooks or NoopHooks()
    vertex = graph.entity(intersection.node_id)
    way1 = graph.entity(intersection.moved_id)
    way2 = graph.entity(intersection.unmoved_id)
    ep1, ep2 = intersection.moved_is_endpoint, intersection.unmoved_is_endpoint

    # an endpoint of both ways is free to sit anywhere
    if ep1 and ep2:
        return graph

    nodes1 = _nodes_without(graph, way1, vertex.id)
    nodes2 = _nodes_without(graph, way2, vertex.id)
    point = projection(vertex.loc)
    edge1 = None if ep1 else choose_edge(nodes1, point, projection)
    edge2 = None if ep2 else choose_edge(nodes2, point, projection)
    if (not ep1 and edge1 is None) or (not ep2 and edge2 is None):
        return graph

    # snap vertex to nearest edge (or some point between them)
    if not ep1 and not ep2:
        for _ in range(settings.untangle_max_iter):
            loc = vec_interp(edge1.loc, edge2.loc, 0.5)
            edge1 = choose_edge(nodes1, projection(loc), projection)
            edge2 = choose_edge(nodes2, projection(loc), projection)
            if abs(edge1.distance - edge2.distance) < settings.untangle_epsilon:
                break
    elif not ep1:
        loc = edge1.loc
    else:
        loc = edge2.loc

    graph = graph.replace(vertex.move(loc))

    for way, edge, is_ep in ((way1, edge1, ep1), (way2, edge2, ep2)):
        if is_ep:
            continue
        current = way.nodes.index(vertex.id)
        if edge.index != current:
            way = way.remove_node(vertex.id).add_node(vertex.id, edge.index)
            graph = graph.replace(way)
            hooks.vertex_reordered(
                way_id=way.id, node_id=vertex.id, old_index=current, new_index=edge.index
            )

    return graph


# ------------------- Action ---------------------------


class MoveAction:
    """
    Callable graph -> graph moving `move_ids` by the planar `delta`.

    The cache may be shared between actions for the same selection, e.g. one
    action per mouse move while dragging, each applied to the pre-drag graph.
    """

    def __init__(
        self,
        move_ids: Iterable[str],
        delta: Vec,
        projection: Projection,
        cache: MoveCache | None = None,
        settings: MoveModel | None = None,
        hooks: MoveHooks | None = None,
    ):
        self.move_ids = tuple(move_ids)
        self.requested = (float(delta[0]), float(delta[1]))
        self._delta = self.requested
        self.projection = projection
        self.cache = cache if cache is not None else MoveCache()
        self.settings = settings or DEFAULTS
        self.hooks = hooks or NoopHooks()

    @property
    def delta(self) -> Vec:
        """Offset actually applied by the last call (possibly limited)."""
        return self._delta

    def __call__(self, graph: Graph) -> Graph:
        delta = self.requested
        if delta[0] == 0 and delta[1] == 0:
            self._delta = delta
            return graph

        cache = build_cache(graph, self.move_ids, self.cache, self.settings, self.hooks)
        if cache.intersections:
            delta = limit_delta(graph, cache, delta, self.projection, self.settings, self.hooks)
        self._delta = delta

        graph = translate(graph, cache, delta, self.projection)

        kw = {"settings": self.settings, "hooks": self.hooks}
        for obj in cache.intersections:
            graph = preserve_vertex(
                obj.node_id, obj.moved_id, graph, delta, cache, self.projection, **kw
            )
            graph = preserve_vertex(
                obj.node_id, obj.unmoved_id, graph, None, cache, self.projection, **kw
            )
            graph = untangle(obj, graph, self.projection, **kw)

        self.hooks.move_applied(
            delta=delta, nodes=len(cache.nodes), intersections=len(cache.intersections)
        )
        return graph
