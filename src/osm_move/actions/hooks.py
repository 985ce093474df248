# actions/hooks.py
from typing import Protocol


class MoveHooks(Protocol):
    def cache_built(self, *, roots, moving, nodes, ways, intersections): ...
    def delta_limited(self, *, node_id, way_id, requested, limited): ...
    def placeholder_inserted(self, *, way_id, node_id, placeholder_id, index): ...
    def vertex_reordered(self, *, way_id, node_id, old_index, new_index): ...
    def move_applied(self, *, delta, nodes, intersections): ...


class NoopHooks:
    def cache_built(self, **_):
        pass

    def delta_limited(self, **_):
        pass

    def placeholder_inserted(self, **_):
        pass

    def vertex_reordered(self, **_):
        pass

    def move_applied(self, **_):
        pass
