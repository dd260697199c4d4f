# =============================================================================
# KYC Signals - MRZ Decoder & Check-Digit Validator
# =============================================================================
"""
ICAO 9303 TD3 (passport) Machine-Readable-Zone decoding.

The TD3 MRZ is two lines of 44 characters. Line 1 carries the document type,
issuing state and the holder's name; line 2 carries the fixed-offset data
fields, each protected by a weighted modulo-10 check digit, plus a composite
check digit over the whole data block:

    P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<
    L898902C36UTO7408122F1204159ZE184226B<<<<<10
    |        ||  |     ||      ||             ||
    docno    cd  dob   cd sex  cd optional    cd composite
              nat        expiry

Decoding never raises: every slice is clamped to the line bounds and a
missing check digit reads as a neutral '0', so a short or garbled line simply
fails validation.

Example:
    record = parse_mrz(line1, line2)
    if record.checks_valid:
        print(record.document_number, record.birth_date)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

from loguru import logger

from kycsignals.config import MrzSettings, get_settings


# =============================================================================
# Constants
# =============================================================================

FILLER = "<"
CHECK_WEIGHTS: tuple[int, int, int] = (7, 3, 1)
PASSPORT_PREFIX = "P<"
NAME_SEPARATOR = "<<"

# TD3 line 2 layout, (start, end) half-open
DOCUMENT_NUMBER = (0, 9)
DOCUMENT_NUMBER_CD = 9
NATIONALITY = (10, 13)
BIRTH_DATE = (13, 19)
BIRTH_DATE_CD = 19
SEX = 20
EXPIRY_DATE = (21, 27)
EXPIRY_DATE_CD = 27
OPTIONAL_DATA = (28, 42)
COMPOSITE_RANGES: tuple[tuple[int, int], ...] = ((0, 10), (13, 20), (21, 43))
COMPOSITE_CD = 43

_WHITESPACE = re.compile(r"\s+")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class MrzCheckResults:
    """Outcome of each individual check-digit validation."""

    document_number: bool = False
    birth_date: bool = False
    expiry_date: bool = False
    composite: bool = False

    @property
    def all_valid(self) -> bool:
        return self.document_number and self.birth_date and self.expiry_date and self.composite

    @property
    def failed(self) -> list[str]:
        """Names of the checks that did not pass."""
        return [
            name
            for name in ("document_number", "birth_date", "expiry_date", "composite")
            if not getattr(self, name)
        ]

    def to_dict(self) -> dict:
        return {
            "documentNumber": self.document_number,
            "birthDate": self.birth_date,
            "expiryDate": self.expiry_date,
            "composite": self.composite,
        }


@dataclass(frozen=True)
class MrzRecord:
    """Fields decoded from a TD3 MRZ pair."""

    document_number: str | None = None
    nationality: str | None = None
    birth_date: date | None = None
    sex: str | None = None
    expiry_date: date | None = None
    full_name: str | None = None
    checks_valid: bool = False

    # Debugging detail
    surname: str | None = None
    given_names: str | None = None
    issuing_country: str | None = None
    optional_data: str | None = None
    checks: MrzCheckResults = field(default_factory=MrzCheckResults)

    @property
    def birth_date_iso(self) -> str | None:
        return self.birth_date.isoformat() if self.birth_date else None

    @property
    def expiry_date_iso(self) -> str | None:
        return self.expiry_date.isoformat() if self.expiry_date else None

    def to_dict(self) -> dict:
        """Serialize with ISO dates."""
        return {
            "documentNumber": self.document_number,
            "nationality": self.nationality,
            "birthDate": self.birth_date_iso,
            "sex": self.sex,
            "expiryDate": self.expiry_date_iso,
            "fullName": self.full_name,
            "surname": self.surname,
            "givenNames": self.given_names,
            "issuingCountry": self.issuing_country,
            "optionalData": self.optional_data,
            "checksValid": self.checks_valid,
            "checks": self.checks.to_dict(),
        }


# =============================================================================
# Bounds-safe access
# =============================================================================

def safe_slice(text: str | None, start: int, end: int) -> str:
    """Return text[start:end] with both bounds clamped; never raises."""
    if not text:
        return ""
    length = len(text)
    lo = max(0, min(start, length))
    hi = max(lo, min(end, length))
    return text[lo:hi]


def safe_char(text: str | None, index: int) -> str:
    """Return the character at index, or '0' (neutral digit) when out of range."""
    if text and 0 <= index < len(text):
        return text[index]
    return "0"


def strip_fillers(value: str | None) -> str | None:
    """Turn '<' fillers into spaces and collapse whitespace; blank -> None."""
    if value is None:
        return None
    cleaned = _WHITESPACE.sub(" ", value.replace(FILLER, " ")).strip()
    return cleaned or None


# =============================================================================
# Check digits (ICAO 9303 Part 3, weighted modulo 10)
# =============================================================================

def mrz_char_value(char: str) -> int:
    """Numeric value of an MRZ character: '<'=0, '0'-'9', 'A'=10 .. 'Z'=35."""
    if "0" <= char <= "9":
        return ord(char) - ord("0")
    if "A" <= char <= "Z":
        return ord(char) - ord("A") + 10
    return 0


def compute_check_digit(data: str) -> int:
    """Compute the check digit of an MRZ field."""
    total = sum(
        mrz_char_value(char) * CHECK_WEIGHTS[i % 3]
        for i, char in enumerate(data)
    )
    return total % 10


def is_valid_check_digit(data: str, check_digit: str) -> bool:
    """
    Validate an MRZ field against its claimed check digit.

    A check digit that is not an ASCII digit (for instance a '<' filler
    standing in for a missing field) is never valid.
    """
    if len(check_digit) != 1 or not ("0" <= check_digit <= "9"):
        return False
    return compute_check_digit(data) == int(check_digit)


# =============================================================================
# Field conversion
# =============================================================================

def yymmdd_to_date(value: str, century_cutover: int = 30) -> date | None:
    """
    Convert an MRZ YYMMDD date.

    Two-digit years at or above the cutover map to the 1900s, the rest to
    the 2000s. This is a fixed cutover, unaware of the issuance date.
    """
    if len(value) != 6 or not value.isascii() or not value.isdigit():
        return None
    yy, month, day = int(value[0:2]), int(value[2:4]), int(value[4:6])
    year = 1900 + yy if yy >= century_cutover else 2000 + yy
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_name(line1: str) -> tuple[str | None, str | None, str | None]:
    """
    Decode (issuing_country, surname, given_names) from MRZ line 1.

    The primary identifier segment starts with the three-letter issuing
    state, which is dropped before the remainder is read as the surname.
    """
    body = line1[len(PASSPORT_PREFIX):] if line1.startswith(PASSPORT_PREFIX) else line1
    parts = body.split(NAME_SEPARATOR)
    primary = parts[0] if parts else ""
    secondary = parts[1] if len(parts) > 1 else ""

    country = strip_fillers(safe_slice(primary, 0, 3))
    surname = primary[3:]
    return country, strip_fillers(surname), strip_fillers(secondary)


def split_mrz_block(block: str | None) -> tuple[str | None, str | None]:
    """Split a multi-line MRZ text block into its first two lines."""
    if not block:
        return None, None
    lines = [line.strip() for line in _LINE_BREAK.split(block.strip()) if line.strip()]
    if len(lines) < 2:
        return None, None
    return lines[0], lines[1]


# =============================================================================
# Decoder
# =============================================================================

def parse_mrz(
    line1: str | None,
    line2: str | None,
    settings: MrzSettings | None = None,
) -> MrzRecord:
    """
    Decode and validate a TD3 MRZ pair.

    Args:
        line1: First MRZ line (document type, issuing state, name)
        line2: Second MRZ line (data fields and check digits)
        settings: MRZ settings; defaults to the application settings

    Returns:
        MrzRecord. When either line is missing or line 2 is too short the
        record has checks_valid=False and no decoded fields.
    """
    settings = settings or get_settings().mrz

    if not isinstance(line1, str) or not isinstance(line2, str):
        logger.debug("MRZ line missing, skipping decode")
        return MrzRecord()

    line1 = line1.strip()
    line2 = line2.strip()
    if len(line2) < settings.min_line2_length:
        logger.debug(f"MRZ line 2 too short ({len(line2)} < {settings.min_line2_length})")
        return MrzRecord()

    doc_number = safe_slice(line2, *DOCUMENT_NUMBER)
    birth = safe_slice(line2, *BIRTH_DATE)
    expiry = safe_slice(line2, *EXPIRY_DATE)
    composite = "".join(safe_slice(line2, start, end) for start, end in COMPOSITE_RANGES)

    checks = MrzCheckResults(
        document_number=is_valid_check_digit(doc_number, safe_char(line2, DOCUMENT_NUMBER_CD)),
        birth_date=is_valid_check_digit(birth, safe_char(line2, BIRTH_DATE_CD)),
        expiry_date=is_valid_check_digit(expiry, safe_char(line2, EXPIRY_DATE_CD)),
        composite=is_valid_check_digit(composite, safe_char(line2, COMPOSITE_CD)),
    )
    if not checks.all_valid:
        logger.debug(f"MRZ check digits failed: {', '.join(checks.failed)}")

    country, surname, given_names = parse_name(line1)
    full_name = " ".join(part for part in (given_names, surname) if part) or None
    sex = safe_char(line2, SEX) if len(line2) > SEX else FILLER

    return MrzRecord(
        document_number=strip_fillers(doc_number),
        nationality=strip_fillers(safe_slice(line2, *NATIONALITY)),
        birth_date=yymmdd_to_date(birth, settings.century_cutover),
        sex=None if sex == FILLER else sex,
        expiry_date=yymmdd_to_date(expiry, settings.century_cutover),
        full_name=full_name,
        checks_valid=checks.all_valid,
        surname=surname,
        given_names=given_names,
        issuing_country=country,
        optional_data=strip_fillers(safe_slice(line2, *OPTIONAL_DATA)),
        checks=checks,
    )
