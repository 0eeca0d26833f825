"""Inbound payloads and the explicit validation functions the host boundary calls.

``validate_*`` never raise: they return a ``ValidationResult`` holding either
the parsed payload or a list of field errors.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from npscore.models.campaign import CampaignCounter
from npscore.models.customer import CustomerSegment

RESPONSE_PAGE_MAX = 100


class AnswerIn(BaseModel):
    question_id: str = Field(..., min_length=1)
    value: Optional[str] = Field(None, max_length=5000)
    numeric_value: Optional[float] = None
    selected_options: Optional[List[str]] = None
    other_value: Optional[str] = Field(None, max_length=500)

    class Config:
        extra = "forbid"

    @field_validator("numeric_value", mode="before")
    @classmethod
    def numeric_value_not_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("Input should be a number, not a boolean")
        return value


class ResponsePayloadBase(BaseModel):
    respondent_email: Optional[EmailStr] = None
    respondent_name: Optional[str] = Field(None, max_length=255)
    feedback: Optional[str] = Field(None, max_length=5000)
    answers: List[AnswerIn] = Field(default_factory=list)
    campaign_id: Optional[str] = None

    class Config:
        extra = "forbid"


class ResponseCreate(ResponsePayloadBase):
    """Authenticated/admin submission; may name the customer and the score directly."""
    customer_id: Optional[str] = None
    score: Optional[int] = Field(None, ge=0, le=10, strict=True)


class PublicResponseSubmit(ResponsePayloadBase):
    """Public submission; the score comes from the survey's NPS question."""
    metadata: Optional[Dict[str, Any]] = None


class SubmissionContext(BaseModel):
    ip_address: Optional[str] = Field(None, max_length=45)
    user_agent: Optional[str] = Field(None, max_length=500)


class FlagUpdate(BaseModel):
    flagged: bool
    reason: Optional[str] = Field(None, max_length=500)


class CampaignEvent(BaseModel):
    field: CampaignCounter
    delta: int = Field(1, ge=0)


class ResponseQuery(BaseModel):
    """Filters, ordering and paging for response listings."""
    survey_id: Optional[str] = None
    segment: Optional[CustomerSegment] = None
    search: Optional[str] = Field(None, max_length=255)
    flagged: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: Literal["created_at", "completed_at", "nps_score"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    class Config:
        extra = "forbid"

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_utc(cls, value):
        # Stored timestamps are naive UTC
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("limit")
    @classmethod
    def cap_limit(cls, value):
        return min(value, RESPONSE_PAGE_MAX)


class FieldError(BaseModel):
    field: str
    message: str


class ValidationResult(BaseModel):
    value: Optional[Any] = None
    errors: List[FieldError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_dicts(self) -> List[Dict[str, str]]:
        return [e.model_dump() for e in self.errors]


def _validate(model, data) -> ValidationResult:
    try:
        return ValidationResult(value=model.model_validate(data))
    except PydanticValidationError as exc:
        errors = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
            errors.append(FieldError(field=field, message=err.get("msg", "Invalid value")))
        return ValidationResult(errors=errors)


def validate_response_create(data) -> ValidationResult:
    return _validate(ResponseCreate, data)


def validate_public_submission(data) -> ValidationResult:
    return _validate(PublicResponseSubmit, data)


def validate_flag_update(data) -> ValidationResult:
    return _validate(FlagUpdate, data)


def validate_campaign_event(data) -> ValidationResult:
    return _validate(CampaignEvent, data)


def validate_response_query(data) -> ValidationResult:
    return _validate(ResponseQuery, data)
