"""
CLI Bridge: Pydantic models.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional, Union

# Closed set of value kinds the argument builder knows how to render.
# Nested objects are let through only so the builder can drop them.
Scalar = Union[bool, int, float, str]
OptionValue = Union[Scalar, List[Scalar]]
CommandOptions = Dict[str, Optional[Union[OptionValue, Dict[str, Any]]]]


class OptionSpec(BaseModel):
    id: str
    label: str
    type: str = "text"
    required: bool = False
    depends_on: Optional[str] = Field(default=None, serialization_alias="dependsOn")
    choices: List[str] = Field(default_factory=list, serialization_alias="options")


class CommandDefinition(BaseModel):
    name: str
    description: str = ""
    options: List[OptionSpec] = []


class ExecuteRequest(BaseModel):
    command: str = Field(..., min_length=1, max_length=200)
    options: CommandOptions = {}


class FetchEntitiesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    environment_id: Optional[str] = Field(default=None, alias="environmentId")
    api_key: Optional[str] = Field(default=None, alias="apiKey")


# ─── Stream events ────────────────────────────────────────────────────────────

class ConnectedEvent(BaseModel):
    type: Literal["connected"] = "connected"
    message: str = "Connected to command stream"
    execution_id: Optional[str] = Field(default=None, serialization_alias="executionId")


class OutputEvent(BaseModel):
    type: Literal["output"] = "output"
    level: Literal["info", "error"] = "info"
    message: str


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    percent: Optional[float] = Field(default=None, ge=0, le=100)
    message: str
    stage: str = ""


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    success: bool
    message: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str
    solution: Optional[str] = None


StreamEvent = Union[ConnectedEvent, OutputEvent, ProgressEvent, CompleteEvent, ErrorEvent]
