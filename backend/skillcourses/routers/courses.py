from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from skillcourses.core.errors import InvalidRoundDefinition
from skillcourses.core.security import Principal, UserRole, get_current_user, require_roles
from skillcourses.db.session import get_db
from skillcourses.models.course import CourseStatus
from skillcourses.routers.common import (
    course_public,
    ensure_course_owner,
    parse_uuid,
    round_authoring,
    round_public,
)
from skillcourses.schemas.course import CourseCreateRequest, CoursePublic, CourseUpdateRequest
from skillcourses.schemas.round import RoundAuthoring, RoundPublic, round_adapter
from skillcourses.services.catalog import CatalogService

router = APIRouter(prefix="/skills/courses", tags=["skill-courses"])

faculty_only = require_roles(UserRole.faculty)


def _can_author(user: Principal) -> bool:
    return user.role in (UserRole.faculty, UserRole.admin)


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid round definition"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg") or "invalid value")
    return f"{loc}: {msg}" if loc else msg


@router.post("", response_model=CoursePublic)
def create_course(
    body: CourseCreateRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    catalog = CatalogService(db)
    course = catalog.create_course(
        title=body.title,
        created_by=user.id,
        short_description=body.short_description,
        pass_threshold=body.pass_threshold,
        category=body.category,
        difficulty=body.difficulty,
        duration=body.duration,
    )
    return course_public(course)


@router.get("", response_model=list[CoursePublic])
def list_courses(
    status: CourseStatus | None = Query(default=None),
    category: str | None = Query(default=None),
    mine: bool = Query(default=False),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    catalog = CatalogService(db)
    if not _can_author(user):
        # learners only ever browse published courses
        status = CourseStatus.published
        mine = False
    courses = catalog.list_courses(
        status=status,
        category=category,
        created_by=user.id if mine else None,
    )
    return [course_public(c, catalog.list_rounds(c.id)) for c in courses]


@router.get("/{course_id}", response_model=CoursePublic)
def get_course(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    if not _can_author(user) and course.status != CourseStatus.published:
        raise HTTPException(status_code=404, detail="course not found")
    return course_public(course, catalog.list_rounds(course.id))


@router.put("/{course_id}", response_model=CoursePublic)
def update_course(
    course_id: str,
    body: CourseUpdateRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    course = catalog.update_course(course.id, **body.model_dump(exclude_unset=True))
    return course_public(course, catalog.list_rounds(course.id))


@router.delete("/{course_id}")
def delete_course(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(faculty_only)):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    catalog.delete_course(course.id)
    return {"ok": True}


@router.post("/{course_id}/publish", response_model=CoursePublic)
def publish_course(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(faculty_only)):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    course = catalog.publish(course.id, actor_id=user.id)
    return course_public(course, catalog.list_rounds(course.id))


@router.post("/{course_id}/unpublish", response_model=CoursePublic)
def unpublish_course(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(faculty_only)):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    course = catalog.unpublish(course.id, actor_id=user.id)
    return course_public(course, catalog.list_rounds(course.id))


@router.post("/{course_id}/rounds", response_model=RoundAuthoring)
def define_round(
    course_id: str,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    try:
        definition = round_adapter.validate_python(body)
    except PydanticValidationError as e:
        raise InvalidRoundDefinition(_first_error(e)) from e
    row = catalog.define_round(course.id, definition)
    return round_authoring(row)


@router.get("/{course_id}/rounds", response_model=list[RoundPublic])
def list_rounds(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    if not _can_author(user) and course.status != CourseStatus.published:
        raise HTTPException(status_code=404, detail="course not found")
    return [round_public(r) for r in catalog.list_rounds(course.id)]


@router.get("/{course_id}/rounds/authoring", response_model=list[RoundAuthoring])
def list_rounds_for_authoring(
    course_id: str,
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    catalog = CatalogService(db)
    course = catalog.get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)
    return [round_authoring(r) for r in catalog.list_rounds(course.id)]
