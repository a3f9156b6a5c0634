"""Tests for the certification catalogue."""

import pytest

from app.core.certifications import CATALOGUE
from app.core.enums import Course, CourseDuration


@pytest.mark.parametrize(
    "course,duration,title",
    [
        (Course.COMPUTER_COURSE, CourseDuration.THREE_MONTHS, "CERTIFICATION IN COMPUTER APPLICATION"),
        (Course.COMPUTER_COURSE, CourseDuration.SIX_MONTHS, "DIPLOMA IN COMPUTER APPLICATION"),
        (Course.COMPUTER_COURSE, CourseDuration.ONE_YEAR, "ADVANCE DIPLOMA IN COMPUTER APPLICATION"),
        (Course.TALLY, CourseDuration.THREE_MONTHS, "CERTIFICATION IN COMPUTER ACCOUNTANCY"),
        (Course.TALLY, CourseDuration.SIX_MONTHS, "DIPLOMA IN COMPUTER ACCOUNTANCY"),
    ],
)
def test_certification_title(course, duration, title) -> None:
    assert CATALOGUE.certification_title(course, duration) == title


def test_certification_title_accepts_raw_values() -> None:
    assert CATALOGUE.certification_title("Tally", "6 months") == "DIPLOMA IN COMPUTER ACCOUNTANCY"


def test_untiered_course_uses_course_name() -> None:
    assert CATALOGUE.certification_title(Course.REACT, CourseDuration.THREE_MONTHS) == "React"
    assert CATALOGUE.subjects_for("React") == ()


def test_subjects_for_title() -> None:
    subjects = CATALOGUE.subjects_for("DIPLOMA IN COMPUTER ACCOUNTANCY")
    assert [s.code for s in subjects] == ["CS-01", "CS-02", "CS-07", "CS-08", "CS-09"]
    assert subjects[0].max_theory_marks == 100
    assert subjects[0].max_practical_marks == 0


def test_subjects_for_missing_title() -> None:
    assert CATALOGUE.subjects_for(None) == ()


def test_catalogue_is_read_only() -> None:
    with pytest.raises(TypeError):
        CATALOGUE.titles[(Course.PTE, CourseDuration.ONE_YEAR)] = "X"
    with pytest.raises(AttributeError):
        CATALOGUE.subjects = {}
