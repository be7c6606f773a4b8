from __future__ import annotations
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class SessionCreateIn(BaseModel):
    schedule_id: int
    # bounds come from config and are enforced by the service
    duration_minutes: Optional[int] = None


class SessionQuery(BaseModel):
    schedule_id: Optional[int] = None
    active: Optional[bool] = None
    on_date: Optional[date] = Field(None, alias="date")
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class SubmitIn(BaseModel):
    token: str = Field(min_length=1, max_length=32)

    @field_validator("token")
    @classmethod
    def normalise(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("token must not be blank")
        return v


class ManualAttendanceIn(BaseModel):
    session_id: int
    student_id: int
    status: str = Field(min_length=1)


class StatusIn(BaseModel):
    status: str = Field(min_length=1)


class _DateRange(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to must be >= date_from")
        return self


class HistoryQuery(_DateRange):
    status: Optional[str] = None
    subject_id: Optional[int] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class SummaryQuery(_DateRange):
    pass
