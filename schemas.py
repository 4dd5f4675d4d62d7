"""
Database Schemas

MongoDB collection schemas defined as Pydantic models.

Every field is optional and unknown fields are kept, so partial documents
and extra keys pass straight through to storage. The models only cast
values to their declared types (ISO strings or JavaScript Date strings to
UTC datetimes, "12.5" to 12.5, 123 to "123").

Each model maps to one collection:
- Task -> "tasks" collection
- Revenue -> "revenues" collection
- Expense -> "expenses" collection
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# JavaScript Date.prototype.toString(), e.g.
# "Mon Jan 01 2024 10:00:00 GMT+0000 (Coordinated Universal Time)"
JS_DATE_RE = re.compile(r"^\w{3} (\w{3} \d{2} \d{4} \d{2}:\d{2}:\d{2}) GMT([+-]\d{4})")


class Record(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @field_validator("createdAt", mode="before", check_fields=False)
    @classmethod
    def parse_js_date(cls, value):
        if isinstance(value, str):
            match = JS_DATE_RE.match(value)
            if match:
                return datetime.strptime(" ".join(match.groups()), "%b %d %Y %H:%M:%S %z")
        return value

    @field_validator("createdAt", check_fields=False)
    @classmethod
    def to_utc(cls, value):
        # Stored as UTC; naive input is read as UTC
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_document(self) -> Dict[str, Any]:
        """Only the fields the caller sent, minus any client-supplied _id."""
        data = self.model_dump(exclude_unset=True)
        data.pop("_id", None)
        return data


class Task(Record):
    """
    Tasks collection schema
    Collection name: "tasks"
    """
    person: Optional[str] = Field(None, description="Whose task this is, free text")
    text: Optional[str] = Field(None, description="Task description")
    completed: Optional[bool] = Field(None, description="Whether the task is done")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp, used for ordering")


class Revenue(Record):
    """
    Revenue entries
    Collection name: "revenues"
    """
    amount: Optional[float] = Field(None, description="Revenue amount")
    source: Optional[str] = Field(None, description="Where the money came from")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")


class Expense(Record):
    """
    Expense entries
    Collection name: "expenses"
    """
    amount: Optional[float] = Field(None, description="Expense amount")
    reason: Optional[str] = Field(None, description="What the money was spent on")
    createdAt: Optional[datetime] = Field(None, description="Creation timestamp")
