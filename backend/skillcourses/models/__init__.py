from skillcourses.models.course import CourseStatus, SkillCourse, SkillRound
from skillcourses.models.enrollment import ProjectSubmission, SkillEnrollment, SubmissionStatus
from skillcourses.models.event import SkillEvent, SkillEventType

__all__ = [
    "CourseStatus",
    "SkillCourse",
    "SkillRound",
    "SkillEnrollment",
    "ProjectSubmission",
    "SubmissionStatus",
    "SkillEvent",
    "SkillEventType",
]
