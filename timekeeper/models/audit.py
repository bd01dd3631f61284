from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UTC = timezone.utc


class AuditRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    log_id: str
    user_id: str
    action: str = "delete"
    deleted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deleted_by: str
    log_data: Dict[str, Any]  # snapshot of the log and its breaks

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
