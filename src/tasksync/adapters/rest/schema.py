"""Pydantic models describing the task service request/response bodies."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskServiceModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ErrorResponse(TaskServiceModel):
    message: str

    @field_validator("message", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or "unknown error"
        return value


class CreateTaskRequest(BaseModel):
    """Create body: the task attributes plus the echoed correlation token."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    correlation_token: str = Field(alias="correlationToken", min_length=1)

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json")
