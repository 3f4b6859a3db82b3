from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Record(BaseModel):
    """Persisted record. Stored with the camelCase keys of the legacy JSON files."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Employee(Record):
    employee_id: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    role: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class LoyaltyProfile(Record):
    loyalty_id: str
    employee_id: str
    chat_user_id: str = Field(
        validation_alias=AliasChoices("chatUserId", "telegramId", "chat_user_id"),
        serialization_alias="chatUserId",
    )
    points: int = Field(default=0, ge=0)
    scan_count: int = Field(default=0, ge=0)
    last_daily_reward_at: datetime | None = None

    @field_validator("chat_user_id", mode="before")
    @classmethod
    def coerce_chat_user_id(cls, value):
        # Telegram user ids arrive as ints.
        return str(value) if isinstance(value, int) else value

    @field_validator("last_daily_reward_at")
    @classmethod
    def normalize_reward_tz(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class ScanEvent(Record):
    id: str
    loyalty_id: str
    timestamp: datetime
    scan_type: str = "bot"

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp_tz(cls, value: datetime) -> datetime:
        return as_utc(value)


class ProfileRegister(BaseModel):
    employee_id: str = Field(min_length=1, max_length=120)
    chat_user_id: str = Field(min_length=1, max_length=120)


class ScanCreate(BaseModel):
    scan_type: str = Field(default="bot", min_length=1, max_length=40)


class ProfileOut(BaseModel):
    loyalty_id: str
    employee_id: str
    chat_user_id: str
    points: int
    scan_count: int
    last_daily_reward_at: datetime | None = None
    first_name: str
    last_name: str
    role: str
    qr_url: str


class ScanEventOut(BaseModel):
    id: str
    loyalty_id: str
    timestamp: datetime
    scan_type: str


class DailyRewardsOut(BaseModel):
    updated: int
    profiles: int
