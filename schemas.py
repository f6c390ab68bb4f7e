"""
Database Schemas for the daily planner

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name (e.g., Activity -> "activity", HabitLog -> "habitlog").

Models use snake_case field names; the camelCase aliases are what the API
speaks on the wire.
"""
from datetime import date, datetime
from typing import Annotated, ClassVar, Optional, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _calendar_day(value: str) -> str:
    date.fromisoformat(value)
    return value


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


DateStr = Annotated[str, StringConstraints(pattern=DATE_PATTERN), AfterValidator(_calendar_day)]
TimeStr = Annotated[str, StringConstraints(pattern=TIME_PATTERN)]
Text = Annotated[str, StringConstraints(min_length=1), AfterValidator(_not_blank)]


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationPreference(Schema):
    enabled: bool = True
    lead_time_minutes: int = Field(5, ge=0, le=1440)


class User(Schema):
    id: str = Field(..., description="Subject id from the identity provider")
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    notifications: NotificationPreference = Field(default_factory=NotificationPreference)
    created_at: Optional[datetime] = None


class Activity(Schema):
    user_id: str = Field(..., description="Owner user id")
    title: Text
    description: Optional[str] = None
    start_time: TimeStr
    end_time: TimeStr = Field(..., description="HH:mm, may be earlier than start_time to cross midnight")
    completed: bool = False
    date: DateStr


class Habit(Schema):
    user_id: str = Field(..., description="Owner user id")
    title: Text
    description: Optional[str] = None
    streak: int = Field(0, ge=0)


class HabitLog(Schema):
    habit_id: str = Field(..., description="Habit id (stringified ObjectId)")
    completed_date: DateStr


class JournalEntry(Schema):
    user_id: str = Field(..., description="Owner user id")
    content: Text
    mood: Optional[str] = Field(None, description="Open label, e.g. 'Peaceful'")
    date: DateStr
    created_at: Optional[datetime] = None


class ScheduleSeed(Schema):
    user_id: str
    date: DateStr


# Partial updates. Unset fields are left alone; explicit nulls are rejected
# for fields the collection requires.

class _Patch(Schema):
    required_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _no_null_required(self):
        for name in self.required_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ActivityPatch(_Patch):
    required_fields = ("title", "start_time", "end_time", "completed", "date")

    title: Optional[Text] = None
    description: Optional[str] = None
    start_time: Optional[TimeStr] = None
    end_time: Optional[TimeStr] = None
    completed: Optional[bool] = None
    date: Optional[DateStr] = None


class HabitPatch(_Patch):
    """Title and description only; the streak changes through streaks.log_habit."""
    required_fields = ("title",)

    title: Optional[Text] = None
    description: Optional[str] = None


class JournalEntryPatch(_Patch):
    required_fields = ("content", "date")

    content: Optional[Text] = None
    mood: Optional[str] = None
    date: Optional[DateStr] = None
