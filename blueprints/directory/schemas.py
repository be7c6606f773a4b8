from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------- Classes ----------
class ClassIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

class ClassOut(ClassIn):
    model_config = ConfigDict(from_attributes=True)
    id: int

# ---------- Subjects ----------
class SubjectIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)

class SubjectOut(SubjectIn):
    model_config = ConfigDict(from_attributes=True)
    id: int

# ---------- Teachers ----------
class TeacherIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)

class TeacherOut(TeacherIn):
    model_config = ConfigDict(from_attributes=True)
    id: int

# ---------- Students ----------
class StudentIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    nis: str = Field(min_length=1, max_length=50)
    class_id: int

class StudentOut(StudentIn):
    model_config = ConfigDict(from_attributes=True)
    id: int

# ---------- Teacher <-> Subject ----------
class TeacherSubjectIn(BaseModel):
    teacher_id: int
    subject_id: int

class TeacherSubjectOut(TeacherSubjectIn):
    model_config = ConfigDict(from_attributes=True)
    id: int
