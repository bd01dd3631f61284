from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from timekeeper.utils.time_utils import ensure_utc

UTC = timezone.utc


class TimeLog(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    user_id: str
    check_in: datetime
    check_out: Optional[datetime] = None  # None while the session is open
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: Optional[datetime] = None
    is_manual_entry: bool = False

    @field_validator("check_in", "check_out", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value)

    @property
    def is_open(self) -> bool:
        return self.check_out is None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TimeLog":
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})
