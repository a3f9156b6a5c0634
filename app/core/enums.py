from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Course(str, Enum):
    WEB_BASICS = "HTML, CSS, JS"
    REACT = "React"
    MERN = "MERN FullStack"
    AUTOCAD = "Autocad"
    CORELDRAW = "CorelDRAW"
    TALLY = "Tally"
    PREMIER_PRO = "Premier Pro"
    WORDPRESS = "WordPress"
    COMPUTER_COURSE = "Computer Course"
    MS_OFFICE = "MS Office"
    PTE = "PTE"


class CourseDuration(str, Enum):
    THREE_MONTHS = "3 months"
    SIX_MONTHS = "6 months"
    ONE_YEAR = "1 year"


class Qualification(str, Enum):
    TENTH = "10th"
    TWELFTH = "12th"
    GRADUATED = "Graduated"


class FeePaymentStatus(str, Enum):
    FULLY_PAID = "FullyPaid"
    PARTIALLY_PAID = "PartiallyPaid"
    NOT_PAID = "NotPaid"
