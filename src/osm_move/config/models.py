from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False


# ----------------- MOVE ---------------------


class MoveModel(BaseModel):
    """Tolerances of the move action. Distances are in projected units."""

    model_config = ConfigDict(extra="forbid")
    straight_tolerance_deg: float = 5.0  # placeholder skipped within this of 180 deg
    untangle_epsilon: float = 1e-6
    untangle_max_iter: int = 10
    max_shared_nodes: int = 2  # ways sharing more nodes are too connected to untangle
    junction_ways: int = 3  # vertices with this many parent ways stay put
    hit_epsilon: float = 1e-9

    @field_validator("straight_tolerance_deg")
    @classmethod
    def _tolerance_range(cls, v: float) -> float:
        if not 0 < v < 90:
            raise ValueError("straight_tolerance_deg must be in (0, 90)")
        return v

    @field_validator("untangle_epsilon", "hit_epsilon")
    def _positive(cls, v: float, info: ValidationInfo) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("untangle_max_iter", "max_shared_nodes")
    def _at_least_one(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("junction_ways")
    @classmethod
    def _junction(cls, v: int) -> int:
        if v < 2:
            raise ValueError("junction_ways must be >= 2")
        return v


# ----------------- PROJECTIONS ---------------------


class ProjectionMercatorModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["mercator"] = "mercator"
    zoom: float = 17.0
    translate: tuple[float, float] = (0.0, 0.0)

    @field_validator("zoom")
    @classmethod
    def _zoom_range(cls, v: float) -> float:
        if not 0 <= v <= 24:
            raise ValueError("zoom must be within 0..24")
        return v


class ProjectionIdentityModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["identity"] = "identity"
    scale: float = 1.0
    translate: tuple[float, float] = (0.0, 0.0)

    @field_validator("scale")
    @classmethod
    def _nonzero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("scale must be non-zero")
        return v


ProjectionUnion = Annotated[
    ProjectionMercatorModel | ProjectionIdentityModel, Field(discriminator="kind")
]


# ------------------------------------------------------------------


class EditorModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "editor"
    log: LogModel = LogModel()
    projection: ProjectionUnion = Field(default_factory=ProjectionMercatorModel)
    move: MoveModel = MoveModel()
