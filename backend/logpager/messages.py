from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

class Message(BaseModel):
    """Worker message base. Fields travel as camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)

# ------------------------------------------------------------
# Requests (caller -> worker)
# ------------------------------------------------------------

class CreateIndex(Message):
    message_type: Literal["CreateIndex"] = "CreateIndex"
    file: str  # local path or file:// URI
    encoding: Optional[str] = None
    chunk_size: Optional[int] = Field(default=None, ge=1)

class Read(Message):
    message_type: Literal["Read"] = "Read"
    line_start: int = Field(ge=0)
    count: int = Field(ge=1)

# ------------------------------------------------------------
# Notifications (worker -> caller)
# ------------------------------------------------------------

class CreateIndexStatus(Message):
    message_type: Literal["CreateIndexStatus"] = "CreateIndexStatus"
    generation: int = 0
    done_bytes: int = Field(ge=0)
    file_size: int = Field(ge=0)

class CreateIndexResult(Message):
    message_type: Literal["CreateIndexResult"] = "CreateIndexResult"
    generation: int = 0
    line_count: int = Field(ge=0)
    file_size: int = Field(ge=0)

class CreateIndexError(Message):
    message_type: Literal["CreateIndexError"] = "CreateIndexError"
    generation: int = 0
    message: str

class ReadResult(Message):
    message_type: Literal["ReadResult"] = "ReadResult"
    line_start: int = Field(ge=0)
    lines: List[str] = Field(default_factory=list)

WorkerMessage = Annotated[
    Union[CreateIndex, Read, CreateIndexStatus, CreateIndexResult, CreateIndexError, ReadResult],
    Field(discriminator="message_type"),
]

_adapter = TypeAdapter(WorkerMessage)

def parse_message(data: dict) -> Message:
    """Validates a raw payload into its message model (raises pydantic.ValidationError)."""
    return _adapter.validate_python(data)
