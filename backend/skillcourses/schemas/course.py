from __future__ import annotations

from pydantic import BaseModel, Field


class CourseCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    short_description: str | None = Field(default=None, max_length=2000)
    pass_threshold: int | None = Field(default=None, ge=0, le=100)
    category: str | None = Field(default=None, max_length=200)
    difficulty: str | None = Field(default=None, max_length=50)
    duration: str | None = Field(default=None, max_length=100)


class CourseUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    short_description: str | None = Field(default=None, max_length=2000)
    pass_threshold: int | None = Field(default=None, ge=0, le=100)
    category: str | None = Field(default=None, max_length=200)
    difficulty: str | None = Field(default=None, max_length=50)
    duration: str | None = Field(default=None, max_length=100)


class CoursePublic(BaseModel):
    id: str
    title: str
    short_description: str | None
    category: str | None
    difficulty: str | None
    duration: str | None
    pass_threshold: int
    status: str
    created_by: str
    rounds_defined: list[int] = []
