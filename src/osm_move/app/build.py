# osm_move/app/build.py
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from osm_move.actions.hooks import MoveHooks, NoopHooks
from osm_move.actions.move import MoveAction, MoveCache
from osm_move.config.models import EditorModel, MoveModel
from osm_move.geo.projection import Projection
from osm_move.geo.vector import Vec
from osm_move.io.move_logging import MoveLogging  # JSON logs
from osm_move.runtime.registries import make_projection


@dataclass
class App:
    projection: Projection
    settings: MoveModel
    hooks: MoveHooks

    def move(self, ids: Iterable[str], delta: Vec, cache: MoveCache | None = None) -> MoveAction:
        return MoveAction(
            ids, delta, self.projection, cache=cache, settings=self.settings, hooks=self.hooks
        )


def build(cfg: EditorModel | Mapping, *, use_logging: bool = True) -> App:
    # 0) Validate config
    model = cfg if isinstance(cfg, EditorModel) else EditorModel.model_validate(cfg)

    # 1) Projection
    projection = make_projection(model.projection)

    # 2) Hooks
    hooks = (
        MoveLogging(name=model.name, level=model.log.level, debug=model.log.debug)
        if use_logging
        else NoopHooks()
    )

    return App(projection=projection, settings=model.move, hooks=hooks)
