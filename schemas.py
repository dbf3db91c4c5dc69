# schemas.py
from datetime import date as date_type, datetime
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

from database import DEFAULT_CATEGORY, RECORD_ID_PATTERN

DataT = TypeVar("DataT")

RecordId = Annotated[str, StringConstraints(pattern=RECORD_ID_PATTERN)]

MAX_ECHO_LENGTH = 40


def _preview(value: str) -> str:
    if len(value) > MAX_ECHO_LENGTH:
        return repr(value[:MAX_ECHO_LENGTH] + "...")
    return repr(value)


def parse_calendar_date(value: Any) -> date_type:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date_type):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Date is required and must be a valid date")
    # ISO 8601 only: partial dates are never completed from the current day
    try:
        return date_parser.isoparse(value.strip()).date()
    except (ValueError, OverflowError):
        raise ValueError(f"Invalid date: {_preview(value)}")


def reject_bool_amount(value: Any):
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    return value


class UserBase(BaseModel):
    username: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)]


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserLogin(UserBase):
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ExpenseIn(BaseModel):
    """Body of POST and PUT /expenses. Unknown fields such as owner are dropped."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    description: str = Field(min_length=3, max_length=100)
    amount: float = Field(ge=0, allow_inf_nan=False)
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1)
    date: date_type

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, value):
        return parse_calendar_date(value)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return reject_bool_amount(value)


class ExpensePatch(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    description: str = Field(default=None, min_length=3, max_length=100)
    amount: float = Field(default=None, ge=0, allow_inf_nan=False)
    category: str = Field(default=None, min_length=1)
    date: date_type = None

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, value):
        return parse_calendar_date(value)

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return reject_bool_amount(value)

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    owner: str
    description: str
    amount: float
    category: str
    date: date_type
    created_at: datetime
    updated_at: datetime


class BatchDeleteIn(BaseModel):
    ids: list[RecordId] = Field(min_length=1)


class BatchDeleteOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    deleted_count: int
    deleted_ids: list[str]


class CategoryIn(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=50)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    owner: str
    name: str
    created_at: datetime


class FieldError(BaseModel):
    field: str
    message: str


class SuccessResponse(BaseModel, Generic[DataT]):
    status: Literal["success"] = "success"
    data: DataT
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str
    errors: Optional[list[FieldError]] = None
