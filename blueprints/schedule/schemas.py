from __future__ import annotations
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

# Semantic checks (HH:MM, day labels, assignment, conflicts) live in the services;
# these only pin the wire types.

class ScheduleIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    teacher_id: Optional[int] = None
    day: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ConflictCheckIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    class_id: Optional[int] = None
    teacher_id: Optional[int] = None
    day: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    exclude_schedule_id: Optional[int] = None
    # row being edited, same meaning as exclude_schedule_id
    id: Optional[int] = None


class ScheduleQuery(BaseModel):
    class_id: Optional[int] = None
    teacher_id: Optional[int] = None
    subject_id: Optional[int] = None
    day: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    sort_by: Literal["day", "start_time", "end_time", "created_at"] = "day"
    sort_order: Literal["asc", "desc"] = "asc"
