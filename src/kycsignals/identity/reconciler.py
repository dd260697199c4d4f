# =============================================================================
# KYC Signals - Identity Reconciler
# =============================================================================
"""
Merges visually extracted document fields with the MRZ and derives the
identity signal consumed by the downstream risk scorer.

Field policy:
    - Visual extraction wins when it is non-blank, the MRZ is the fallback.
    - Visual vs MRZ comparisons run only when both sides are present.
    - A mismatch is only claimed when the MRZ passed its own check digits;
      an MRZ that fails validation is not evidence against the document.

Usage:
    signal = extract_identity_signal(visual, line1, line2)
    payload = signal.to_doc_signals()
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

from loguru import logger
from pydantic import ValidationError

from kycsignals.config import Settings, get_settings
from kycsignals.identity.models import IdentityInfo, IdentitySignal, VisualFields
from kycsignals.identity.mrz import MrzRecord, parse_mrz, split_mrz_block


# =============================================================================
# Constants
# =============================================================================

MRZ_FIELD = "MachineReadableZone"
DOC_NUMBER_FIELD = "DocumentNumber"
NAME_FIELDS: tuple[str, ...] = ("FullName", "Name")
NAME_PAIRS: tuple[tuple[str, str], ...] = (
    ("FirstName", "LastName"),
    ("GivenName", "Surname"),
    ("GivenNames", "Surname"),
)
DOB_FIELDS: tuple[str, ...] = ("DateOfBirth", "BirthDate")
EXPIRY_FIELDS: tuple[str, ...] = ("DateOfExpiration", "ExpirationDate")
COUNTRY_FIELDS: tuple[str, ...] = ("CountryRegion", "Nationality")

# Document-level keys that are never field names in a bare field mapping
METADATA_KEYS: frozenset[str] = frozenset({"confidence", "document_ref", "content"})

REASON_MRZ_INVALID = "MRZ present but failed check-digit validation (ICAO 9303)."
REASON_MISMATCH = "Inconsistency between MRZ and visual fields."
REASON_EXPIRED = "Document expired."
REASON_CROPPED = "Cropped/partial frame detected."

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Helpers
# =============================================================================

def first_non_blank(*values: str | None) -> str | None:
    """Return the first non-blank value, stripped."""
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


def join_name(left: str | None, right: str | None) -> str | None:
    """Join two name parts, tolerating either side missing."""
    left = first_non_blank(left)
    right = first_non_blank(right)
    if left is None and right is None:
        return None
    return _WHITESPACE.sub(" ", " ".join(part for part in (left, right) if part))


def normalize_identifier(value: str) -> str:
    """Uppercase and drop everything that is not A-Z or 0-9."""
    return _NON_ALNUM.sub("", value.upper())


def same_identifier(left: str, right: str) -> bool:
    return normalize_identifier(left) == normalize_identifier(right)


def clamp_quality(confidence: float | None) -> float:
    """Clamp a confidence score into [0, 1]; absent or NaN reads as 0.0."""
    if confidence is None or math.isnan(confidence):
        return 0.0
    return max(0.0, min(1.0, float(confidence)))


def is_expired(expiry_iso: str | None, today: date) -> bool:
    """
    True when the expiry date lies strictly before today.

    An unparsable expiry is treated as not expired (fail-open).
    """
    if not expiry_iso:
        return False
    try:
        return date.fromisoformat(expiry_iso) < today
    except ValueError:
        logger.debug(f"Unparsable expiry date {expiry_iso!r}, treating as not expired")
        return False


def resolve_visual_name(visual: VisualFields) -> str | None:
    """Try the known name fields in priority order."""
    candidates = [visual.text(key) for key in NAME_FIELDS]
    candidates += [join_name(visual.text(first), visual.text(last)) for first, last in NAME_PAIRS]
    return first_non_blank(*candidates)


def _coerce_visual(
    visual_fields: VisualFields | Mapping[str, Any] | None,
) -> tuple[VisualFields, str | None]:
    if visual_fields is None:
        return VisualFields(), "no-document-parsed"
    if isinstance(visual_fields, VisualFields):
        return visual_fields, None
    try:
        if isinstance(visual_fields, Mapping) and "fields" not in visual_fields:
            fields = {k: v for k, v in visual_fields.items() if k not in METADATA_KEYS}
            metadata = {k: v for k, v in visual_fields.items() if k in METADATA_KEYS}
            return VisualFields(fields=fields, **metadata), None
        return VisualFields.model_validate(visual_fields), None
    except ValidationError as e:
        logger.debug(f"Visual fields rejected: {e.error_count()} validation error(s)")
        return VisualFields(), "invalid-visual-fields"


# =============================================================================
# Reconciler
# =============================================================================

class IdentityReconciler:
    """
    Reconciles visual document fields with a decoded MRZ.

    Example:
        reconciler = IdentityReconciler()
        signal = reconciler.reconcile(visual, parse_mrz(line1, line2), mrz_present=True)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def reconcile(
        self,
        visual: VisualFields,
        mrz: MrzRecord,
        *,
        mrz_present: bool,
        today: date | None = None,
        error: str | None = None,
    ) -> IdentitySignal:
        """
        Build the identity signal.

        Args:
            visual: Visually extracted fields
            mrz: Decoded MRZ (possibly failing its checks)
            mrz_present: Whether the document carried an MRZ at all
            today: Reference date for the expiry check, UTC today by default
            error: Error code to report when the visual input was unusable
        """
        today = today or datetime.now(timezone.utc).date()

        v_name = resolve_visual_name(visual)
        v_doc_no = first_non_blank(visual.text(DOC_NUMBER_FIELD))
        v_dob = first_non_blank(*(visual.iso_date(key) for key in DOB_FIELDS))
        v_expiry = first_non_blank(*(visual.iso_date(key) for key in EXPIRY_FIELDS))
        v_country = first_non_blank(*(visual.text(key) for key in COUNTRY_FIELDS))

        # Consistency checks only when both sides are present
        mismatched: list[str] = []
        if v_name and mrz.full_name and not same_identifier(v_name, mrz.full_name):
            mismatched.append("fullName")
        if v_doc_no and mrz.document_number and not same_identifier(v_doc_no, mrz.document_number):
            mismatched.append("docNo")
        if v_dob and mrz.birth_date_iso and v_dob != mrz.birth_date_iso:
            mismatched.append("dob")

        identity_mismatch = mrz.checks_valid and bool(mismatched)
        if mismatched and not mrz.checks_valid:
            logger.debug(f"Ignoring MRZ disagreement on {mismatched}: MRZ failed its check digits")

        expiry = first_non_blank(v_expiry, mrz.expiry_date_iso)
        expired = is_expired(expiry, today)

        keyword = self.settings.identity.cropping_keyword.lower()
        cropping_hint = bool(visual.content) and keyword in visual.content.lower()

        reasons: list[str] = []
        if mrz_present and not mrz.checks_valid:
            reasons.append(REASON_MRZ_INVALID)
        if identity_mismatch:
            reasons.append(REASON_MISMATCH)
        if expired:
            reasons.append(REASON_EXPIRED)
        if cropping_hint:
            reasons.append(REASON_CROPPED)

        return IdentitySignal(
            id_info=IdentityInfo(
                full_name=first_non_blank(v_name, mrz.full_name),
                dob=first_non_blank(v_dob, mrz.birth_date_iso),
                doc_no=first_non_blank(v_doc_no, mrz.document_number),
                country=first_non_blank(v_country, mrz.nationality),
            ),
            mrz_valid=mrz.checks_valid,
            identity_mismatch=identity_mismatch,
            expired=expired,
            cropping_hint=cropping_hint,
            quality=clamp_quality(visual.confidence),
            reasons=reasons,
            ok=error is None,
            error=error,
            document_ref=visual.document_ref,
            mismatched_fields=mismatched if identity_mismatch else [],
            mrz=mrz if mrz_present else None,
        )


# =============================================================================
# Entry point
# =============================================================================

def extract_identity_signal(
    visual_fields: VisualFields | Mapping[str, Any] | None,
    mrz_line1: str | None = None,
    mrz_line2: str | None = None,
    *,
    today: date | None = None,
    settings: Settings | None = None,
) -> IdentitySignal:
    """
    Derive the identity signal for one document. Never raises.

    Args:
        visual_fields: VisualFields, or a mapping of field name to value
            (or a mapping with a "fields" key plus document metadata)
        mrz_line1: First MRZ line; when both lines are omitted the MRZ is
            read from the MachineReadableZone visual field
        mrz_line2: Second MRZ line
        today: Reference date for the expiry check
        settings: Application settings

    Returns:
        IdentitySignal. Unusable input surfaces as ok=False, absent fields
        or entries in the reasons list.
    """
    settings = settings or get_settings()
    visual, error = _coerce_visual(visual_fields)

    if mrz_line1 is None and mrz_line2 is None:
        mrz_line1, mrz_line2 = split_mrz_block(visual.text(MRZ_FIELD))
    mrz_present = any(isinstance(line, str) and line.strip() for line in (mrz_line1, mrz_line2))

    try:
        mrz = parse_mrz(mrz_line1, mrz_line2, settings.mrz)
        return IdentityReconciler(settings).reconcile(
            visual, mrz, mrz_present=mrz_present, today=today, error=error
        )
    except Exception as e:
        logger.exception(f"Identity reconciliation failed: {e}")
        return IdentitySignal(
            ok=False,
            error="reconciliation-failed",
            document_ref=visual.document_ref,
            quality=clamp_quality(visual.confidence),
        )
