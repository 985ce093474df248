# io/move_logging.py
import json
import logging
import sys

from osm_move.actions.hooks import NoopHooks


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload)


def default_json_logger(name="osm_move", level="INFO"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(level)
    return logger


class MoveLogging(NoopHooks):
    """
    Structured logs for the move pipeline. Per-vertex repairs are only
    reported in debug mode; a drag preview fires them on every proposal.
    """

    def __init__(
        self,
        name: str = "editor",
        level: str = "INFO",
        debug: bool = False,
        logger: logging.Logger | None = None,
    ):
        self.name, self.debug = name, debug
        self.log = logger or default_json_logger(level=level)

    def _emit(self, level: str, msg: str, **extra):
        payload = {"editor": self.name}
        self.log.log(getattr(logging, level), msg, extra={"extra": {**payload, **extra}})

    def cache_built(self, *, roots, moving, nodes, ways, intersections):
        self._emit(
            "INFO",
            "cache_built",
            roots=list(roots),
            moving=len(moving),
            nodes=len(nodes),
            ways=len(ways),
            intersections=len(intersections),
        )

    def delta_limited(self, *, node_id, way_id, requested, limited):
        self._emit(
            "INFO",
            "delta_limited",
            node_id=node_id,
            way_id=way_id,
            requested=list(requested),
            limited=list(limited),
        )

    def placeholder_inserted(self, *, way_id, node_id, placeholder_id, index):
        if self.debug:
            self._emit(
                "DEBUG",
                "placeholder_inserted",
                way_id=way_id,
                node_id=node_id,
                placeholder_id=placeholder_id,
                index=index,
            )

    def vertex_reordered(self, *, way_id, node_id, old_index, new_index):
        if self.debug:
            self._emit(
                "DEBUG",
                "vertex_reordered",
                way_id=way_id,
                node_id=node_id,
                old_index=old_index,
                new_index=new_index,
            )

    def move_applied(self, *, delta, nodes, intersections):
        self._emit(
            "INFO", "move_applied", delta=list(delta), nodes=nodes, intersections=intersections
        )
