from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException

from skillcourses.core.security import Principal
from skillcourses.models.course import SkillCourse, SkillRound
from skillcourses.models.enrollment import ProjectSubmission, SkillEnrollment
from skillcourses.services import gating, storage
from skillcourses.services.catalog import CatalogService
from skillcourses.services.enrollments import state_of

log = logging.getLogger(__name__)


def parse_uuid(value: str, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


def ensure_course_owner(course: SkillCourse, user: Principal) -> None:
    if user.is_admin:
        return
    if course.created_by != user.id:
        raise HTTPException(status_code=403, detail="forbidden")


def course_public(course: SkillCourse, rounds: list[SkillRound] | None = None) -> dict:
    return {
        "id": str(course.id),
        "title": course.title,
        "short_description": course.short_description,
        "category": course.category,
        "difficulty": course.difficulty,
        "duration": course.duration,
        "pass_threshold": int(course.pass_threshold),
        "status": course.status.value,
        "created_by": str(course.created_by),
        "rounds_defined": sorted(r.round_number for r in (rounds or [])),
    }


def round_public(row: SkillRound) -> dict:
    definition = CatalogService.parse_round(row)
    out: dict = {"id": str(row.id), "round_number": row.round_number, "title": definition.title}
    if row.round_number == 1:
        out.update(notes=definition.notes, video_url=definition.video_url)
    elif row.round_number == 3:
        out.update(brief=definition.brief, requirements=list(definition.requirements))
    else:
        out["questions"] = [{"prompt": q.prompt, "options": list(q.options)} for q in definition.questions]
    return out


def round_authoring(row: SkillRound) -> dict:
    return {"id": str(row.id), "course_id": str(row.course_id), "definition": CatalogService.parse_round(row)}


def enrollment_public(enrollment: SkillEnrollment, active: ProjectSubmission | None = None) -> dict:
    state = state_of(enrollment, active)
    return {
        "id": str(enrollment.id),
        "course_id": str(enrollment.course_id),
        "student_id": str(enrollment.student_id),
        **state.flags,
        "round2_score": state.round2_score,
        "round4_score": state.round4_score,
        "composite_percentage": gating.composite_percentage(state),
    }


def submission_public(
    submission: ProjectSubmission,
    *,
    active: bool = True,
    student_id: uuid.UUID | None = None,
    with_download_url: bool = False,
) -> dict:
    download_url = None
    if with_download_url:
        try:
            download_url = storage.download_url_for(submission.file_ref)
        except Exception:
            log.warning("could not resolve file_ref for submission %s", submission.id, exc_info=True)
            download_url = None

    return {
        "id": str(submission.id),
        "enrollment_id": str(submission.enrollment_id),
        "attempt_no": int(submission.attempt_no),
        "file_ref": submission.file_ref,
        "description": submission.description,
        "status": submission.status.value,
        "feedback": submission.feedback,
        "reviewed_by": str(submission.reviewed_by) if submission.reviewed_by else None,
        "reviewed_at": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
        "created_at": submission.created_at.isoformat() if submission.created_at else None,
        "active": active,
        "student_id": str(student_id) if student_id else None,
        "download_url": download_url,
    }


def progress_public(progress: dict) -> dict:
    active = progress.get("active_submission")
    return {**progress, "active_submission": submission_public(active) if active is not None else None}
