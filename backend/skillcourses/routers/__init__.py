from skillcourses.routers import courses, health, learning, reviews

__all__ = [
    "courses",
    "health",
    "learning",
    "reviews",
]
