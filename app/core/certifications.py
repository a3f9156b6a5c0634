"""Certification catalogue: course/duration -> certification title -> subjects.

Built once at import and shared read-only. Nothing in here is mutable.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from app.core.enums import Course, CourseDuration


@dataclass(frozen=True)
class Subject:
    code: str
    name: str
    max_theory_marks: int
    max_practical_marks: int


@dataclass(frozen=True)
class CertificationCatalogue:
    subjects: Mapping[str, Subject]
    titles: Mapping[Tuple[Course, CourseDuration], str]
    certification_subjects: Mapping[str, Tuple[str, ...]]

    def certification_title(self, course: Course, duration: CourseDuration) -> str:
        """Title printed on the certificate; courses without a tiered title use their own name."""
        return self.titles.get((Course(course), CourseDuration(duration)), Course(course).value)

    def subjects_for(self, certification_title: Optional[str]) -> Tuple[Subject, ...]:
        codes = self.certification_subjects.get(certification_title or "", ())
        return tuple(self.subjects[code] for code in codes)


def _build_catalogue() -> CertificationCatalogue:
    subjects = {
        s.code: s
        for s in (
            Subject("CS-01", "Basic Computer", 100, 0),
            Subject("CS-02", "Windows Application: MS Office", 40, 60),
            Subject("CS-03", "Operating System", 40, 60),
            Subject("CS-04", "Web Publisher: Internet Browsing", 40, 60),
            Subject("CS-05", "Computer Accountancy: Tally", 40, 60),
            Subject("CS-06", "Desktop Publishing: Photoshop", 40, 60),
            Subject("CS-07", "Computerized Accounting With Tally", 40, 60),
            Subject("CS-08", "Manual Accounting", 40, 60),
            Subject("CS-09", "Tally ERP 9 & Tally Prime", 40, 60),
        )
    }
    titles = {
        (Course.COMPUTER_COURSE, CourseDuration.THREE_MONTHS): "CERTIFICATION IN COMPUTER APPLICATION",
        (Course.COMPUTER_COURSE, CourseDuration.SIX_MONTHS): "DIPLOMA IN COMPUTER APPLICATION",
        (Course.COMPUTER_COURSE, CourseDuration.ONE_YEAR): "ADVANCE DIPLOMA IN COMPUTER APPLICATION",
        (Course.TALLY, CourseDuration.THREE_MONTHS): "CERTIFICATION IN COMPUTER ACCOUNTANCY",
        (Course.TALLY, CourseDuration.SIX_MONTHS): "DIPLOMA IN COMPUTER ACCOUNTANCY",
    }
    certification_subjects = {
        "CERTIFICATION IN COMPUTER APPLICATION": ("CS-01", "CS-02", "CS-03", "CS-04"),
        "DIPLOMA IN COMPUTER APPLICATION": ("CS-01", "CS-02", "CS-03", "CS-04", "CS-05"),
        "ADVANCE DIPLOMA IN COMPUTER APPLICATION": ("CS-01", "CS-02", "CS-03", "CS-05", "CS-06"),
        "CERTIFICATION IN COMPUTER ACCOUNTANCY": ("CS-01", "CS-02", "CS-07", "CS-08"),
        "DIPLOMA IN COMPUTER ACCOUNTANCY": ("CS-01", "CS-02", "CS-07", "CS-08", "CS-09"),
    }
    return CertificationCatalogue(
        subjects=MappingProxyType(subjects),
        titles=MappingProxyType(titles),
        certification_subjects=MappingProxyType(certification_subjects),
    )


CATALOGUE = _build_catalogue()
