"""Strict schema baselines with forbidden extras by default."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class FrozenModel(BaseModel):
    """Immutable value object; a changed value is a new instance."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class StrictRequestModel(FrozenModel):
    """Request DTO base that always forbids unexpected fields and is never mutated."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)
