# domain/graph.py
from collections.abc import Iterable

from osm_move.domain.entities.osm import Entity, Node, Way


class Graph:
    """
    Persistent id -> entity mapping. `replace` returns a new snapshot and leaves
    the receiver untouched, so older snapshots stay valid (previews, undo).
    """

    def __init__(
        self,
        entities: dict[str, Entity] | None = None,
        *,
        _parent_ways: dict[str, tuple[str, ...]] | None = None,
    ):
        self._entities: dict[str, Entity] = dict(entities or {})
        if _parent_ways is None:
            _parent_ways = {}
            for e in self._entities.values():
                if isinstance(e, Way):
                    for nid in dict.fromkeys(e.nodes):
                        _parent_ways[nid] = _parent_ways.get(nid, ()) + (e.id,)
        self._parent_ways = _parent_ways

    @classmethod
    def from_entities(cls, entities: Iterable[Entity]) -> "Graph":
        return cls({e.id: e for e in entities})

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self):
        return iter(self._entities.values())

    def entity(self, entity_id: str) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise KeyError(f"entity {entity_id!r} not found") from None

    def has_entity(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def replace(self, entity: Entity) -> "Graph":
        old = self._entities.get(entity.id)
        if old is entity:
            return self

        parents = self._parent_ways
        if isinstance(old, Way) or isinstance(entity, Way):
            parents = dict(parents)
            before = set(old.nodes) if isinstance(old, Way) else set()
            after = set(entity.nodes) if isinstance(entity, Way) else set()
            for nid in before - after:
                left = tuple(w for w in parents.get(nid, ()) if w != entity.id)
                if left:
                    parents[nid] = left
                else:
                    parents.pop(nid, None)
            for nid in dict.fromkeys(n for n in getattr(entity, "nodes", ()) if n not in before):
                parents[nid] = parents.get(nid, ()) + (entity.id,)

        entities = dict(self._entities)
        entities[entity.id] = entity
        return Graph(entities, _parent_ways=parents)

    def parent_ways(self, node: Node) -> list[Way]:
        return [self._entities[wid] for wid in self._parent_ways.get(node.id, ())]

    def child_nodes(self, way: Way) -> list[Node]:
        return [self.entity(nid) for nid in way.nodes]
