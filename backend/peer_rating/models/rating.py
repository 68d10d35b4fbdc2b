from __future__ import annotations

import math

from pydantic import BaseModel, Field, field_validator, model_validator


class RatingResponseInput(BaseModel):
    field_id: str = Field(..., min_length=1)
    value_score: float | None = None
    value_text: str | None = None

    @field_validator("value_score")
    @classmethod
    def validate_score(cls, value: float | None) -> float | None:
        if value is not None and not math.isfinite(value):
            raise ValueError("value_score must be a finite number")
        return value


class RatingEntryInput(BaseModel):
    executorId: str = Field(..., min_length=1)
    templateId: str = Field(..., min_length=1)
    responses: list[RatingResponseInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_fields(self) -> "RatingEntryInput":
        field_ids = [item.field_id for item in self.responses]
        if len(field_ids) != len(set(field_ids)):
            raise ValueError("responses must not repeat a field_id")
        return self


class SubmitSessionRequest(BaseModel):
    cycleMonth: str
    entries: list[RatingEntryInput]

    @model_validator(mode="after")
    def validate_unique_executors(self) -> "SubmitSessionRequest":
        executor_ids = [entry.executorId for entry in self.entries]
        if len(executor_ids) != len(set(executor_ids)):
            raise ValueError("entries must not repeat an executorId")
        return self
