__all__ = [
    "compute_score",
    "derive_flags",
    "explain_flags",
    "flagged_students",
    "resolve",
    "resolve_for_group",
    "student_progress",
    "summarize",
    "summarize_student",
]

from .aggregate import flagged_students, student_progress, summarize, summarize_student
from .flagger import derive_flags, explain_flags
from .resolver import resolve, resolve_for_group
from .score import compute_score
