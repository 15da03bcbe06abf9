"""Tests for keyword classification and title cleanup."""
import pytest

from event_extraction.classifier import (
    MAX_CLEAN_TITLE_LENGTH,
    classify,
    clean_title,
    generic_title,
    has_due_language,
    normalize_event_type,
)


@pytest.mark.parametrize(
    "text, event_type",
    [
        ("Midterm Exam", "exam"),
        ("Final exam in Room 101", "exam"),
        ("Quiz 2 on chapter 4", "quiz"),
        ("Homework 3 released", "homework"),
        ("Problem set 2", "homework"),
        ("Project presentation", "project"),
        ("Final Project", "project"),
        ("Lecture 5: Sorting", "lecture"),
        ("Office hours in Gates 4", "officeHours"),
        ("Thanksgiving break", "other"),
        ("No class - university holiday", "other"),
        ("Guest speaker", "other"),
    ],
)
def test_classify(text: str, event_type: str) -> None:
    assert classify(text).event_type == event_type


def test_first_family_wins() -> None:
    """Deadline language outranks project words; cancellations outrank lectures."""
    assert classify("Project due Friday").event_type == "homework"
    assert classify("Final Project due").event_type == "homework"
    assert classify("Class cancelled").event_type == "other"


@pytest.mark.parametrize(
    "line, event_type",
    [
        ("Final Exam 12/18 (after Thanksgiving break)", "exam"),
        ("Midterm Exam 10/15, no class that week", "exam"),
        ("Quiz 4 on the Monday after spring break", "quiz"),
        ("Reading response due before the holiday", "homework"),
        ("No class: lecture moved online", "other"),
    ],
)
def test_cancellation_words_do_not_hide_assessments(line: str, event_type: str) -> None:
    """Assessments mentioning a break stay assessments; a bare cancellation is "other"."""
    assert classify(line).event_type == event_type


def test_confidence_by_family() -> None:
    assert classify("Midterm Exam").confidence == 0.9
    assert classify("Quiz 1").confidence == 0.85
    assert classify("Lecture").confidence == 0.7
    unmatched = classify("Guest speaker")
    assert unmatched.confidence == 0.55
    assert unmatched.family is None


def test_has_due_language() -> None:
    assert has_due_language("Essay due Friday")
    assert has_due_language("Turn in lab notebook")
    assert not has_due_language("Lecture on dues and fees")


@pytest.mark.parametrize(
    "value, context, expected",
    [
        ("exam", "", "exam"),
        ("officeHours", "", "officeHours"),
        ("Exam", "", "exam"),
        ("office_hours", "", "officeHours"),
        ("Office Hours", "", "officeHours"),
        ("assignment", "", "homework"),
        ("midterm", "", "exam"),
        ("reading", "Reading quiz on Hamlet", "quiz"),
        (None, "Problem set 4", "homework"),
        ("banana", "", "other"),
        (None, "", "other"),
    ],
)
def test_normalize_event_type(value: object, context: str, expected: str) -> None:
    """Anything outside the closed set is mapped or inferred, never passed through."""
    assert normalize_event_type(value, context) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("1. Midterm Exam: 10/15", "Midterm Exam"),
        ("Week 3: Sorting algorithms - Due 9/19", "Sorting algorithms"),
        ("• March 5-7: no class", "No class"),
        ("HW 2: 9/5", "HW 2"),
        ("Mon 10/6 - Lecture on graphs", "Lecture on graphs"),
        ("quiz on chapter 2 (Oct 3)", "Quiz on chapter 2"),
    ],
)
def test_clean_title(line: str, expected: str) -> None:
    assert clean_title(line) == expected


def test_clean_title_uses_generic_title_when_nothing_is_left() -> None:
    """A line that is only a date gets a generic title."""
    assert clean_title("10/15") == "Academic Event"
    assert clean_title("10/15", course_code="CS 101") == "CS 101 Event"
    assert clean_title("10/20 --", classify("midterm exam")) == "Midterm Exam"


def test_clean_title_is_capped() -> None:
    title = clean_title("a" * 200)

    assert len(title) == MAX_CLEAN_TITLE_LENGTH
    assert title[0] == "A"


def test_generic_titles() -> None:
    assert generic_title(classify("midterm")) == "Midterm Exam"
    assert generic_title(classify("Final")) == "Final Exam"
    assert generic_title(classify("quiz")) == "Quiz"
    assert generic_title(classify("homework")) == "Assignment Due"
    assert generic_title(classify("something"), "CS 101") == "CS 101 Event"
