from dataclasses import dataclass, field, replace
from itertools import count

from osm_move.geo.vector import Loc

# Keys whose presence on a closed way suggests an area rather than a ring of line.
AREA_KEYS = frozenset(
    {
        "aeroway",
        "amenity",
        "building",
        "craft",
        "historic",
        "landuse",
        "leisure",
        "man_made",
        "natural",
        "office",
        "place",
        "shop",
        "sport",
        "tourism",
    }
)

_new_ids = count(1)


def _no_repeats(ids) -> list[str]:
    out: list[str] = []
    for i in ids:
        if not out or out[-1] != i:
            out.append(i)
    return out


@dataclass(frozen=True)
class Node:
    id: str
    loc: Loc
    tags: dict[str, str] = field(default_factory=dict, compare=False)

    type = "node"

    @classmethod
    def create(cls, loc: Loc = (0.0, 0.0), **tags: str) -> "Node":
        # negative ids mark entities not yet uploaded
        return cls(id=f"n-{next(_new_ids)}", loc=loc, tags=tags)

    def move(self, loc: Loc) -> "Node":
        return replace(self, loc=(float(loc[0]), float(loc[1])))


@dataclass(frozen=True)
class Way:
    id: str
    nodes: tuple[str, ...]
    tags: dict[str, str] = field(default_factory=dict, compare=False)

    type = "way"

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))

    def first(self) -> str:
        return self.nodes[0]

    def last(self) -> str:
        return self.nodes[-1]

    def is_closed(self) -> bool:
        return len(self.nodes) > 1 and self.first() == self.last()

    def is_area(self) -> bool:
        if self.tags.get("area") == "yes":
            return True
        if not self.is_closed() or self.tags.get("area") == "no":
            return False
        return any(k in AREA_KEYS and v != "no" for k, v in self.tags.items())

    def affix(self, node_id: str) -> str | None:
        if not self.nodes:
            return None
        if self.nodes[0] == node_id:
            return "prefix"
        if self.nodes[-1] == node_id:
            return "suffix"
        return None

    def add_node(self, node_id: str, index: int | None = None) -> "Way":
        nodes = list(self.nodes)
        closed = self.is_closed()
        top = len(nodes) - 1 if closed else len(nodes)
        if index is None:
            index = top
        if index < 0 or index > top:
            raise IndexError(f"index {index} out of range 0..{top}")

        if closed:
            nodes.pop()  # re-closed below
        nodes.insert(index, node_id)
        nodes = _no_repeats(nodes)
        if closed and (len(nodes) == 1 or nodes[0] != nodes[-1]):
            nodes.append(nodes[0])
        return replace(self, nodes=tuple(nodes))

    def remove_node(self, node_id: str) -> "Way":
        closed = self.is_closed()
        nodes = _no_repeats(n for n in self.nodes if n != node_id)
        if closed and nodes and (len(nodes) == 1 or nodes[0] != nodes[-1]):
            nodes.append(nodes[0])
        return replace(self, nodes=tuple(nodes))


@dataclass(frozen=True)
class Member:
    id: str
    type: str
    role: str = ""


@dataclass(frozen=True)
class Relation:
    id: str
    members: tuple[Member, ...]
    tags: dict[str, str] = field(default_factory=dict, compare=False)

    type = "relation"

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))


Entity = Node | Way | Relation
