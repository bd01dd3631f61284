from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from timekeeper.utils.time_utils import ensure_utc

UTC = timezone.utc


class BreakStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class Break(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    id: Optional[str] = None
    user_id: str
    time_log_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    is_paid: bool = False
    status: BreakStatus = Field(default=BreakStatus.ACTIVE, validate_default=True)
    duration_minutes: Optional[float] = Field(default=None, alias="duration")  # set when the break ends
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: Optional[datetime] = None

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Break":
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})
