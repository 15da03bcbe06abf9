"""Course details guessed from a document label (usually the uploaded filename)."""
from __future__ import annotations

import re
import typing as t
from pathlib import PurePath

from pydantic import BaseModel


COURSE_CODE_RE = re.compile(r"(?<![A-Za-z])([A-Z]{2,4})\s*[_\-\s]?(\d{2,4})(?!\d)", re.IGNORECASE)
DEFAULT_COURSE_NAME = "Course Syllabus"

# (subject, filename fragments); first hit wins
SUBJECT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("history", ("hist",)),
    ("english", ("eng", "lit")),
    ("math", ("math", "calc", "algebra")),
    ("science", ("bio", "chem", "phys")),
    ("computer-science", ("cs", "comp", "prog")),
    ("psychology", ("psyc",)),
    ("business", ("econ", "business")),
)


class CourseInfo(BaseModel):
    course_code: t.Optional[str] = None
    course_name: str = DEFAULT_COURSE_NAME
    subject: str = "general"


def detect_subject(label: str) -> str:
    lowered = (label or "").lower()
    for subject, fragments in SUBJECT_KEYWORDS:
        if any(fragment in lowered for fragment in fragments):
            return subject
    return "general"


def course_info_from_label(label: t.Optional[str]) -> CourseInfo:
    """
    Guess course code, name and subject from a filename such as
    ``"CS101_Intro_to_Programming.pdf"``.

    The code is normalized to ``"CS 101"``. The name is whatever remains once
    the extension and code are removed, or "Course Syllabus" if nothing does.
    """
    stem = PurePath(label or "").name
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]

    course_code = None
    match = COURSE_CODE_RE.search(stem)
    if match:
        course_code = f"{match.group(1).upper()} {match.group(2)}"
        stem = stem[:match.start()] + stem[match.end():]

    name = re.sub(r"\s+", " ", re.sub(r"[_\-]+", " ", stem)).strip()
    return CourseInfo(
        course_code=course_code,
        course_name=name or DEFAULT_COURSE_NAME,
        subject=detect_subject(label or ""),
    )
