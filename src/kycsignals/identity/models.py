# =============================================================================
# KYC Signals - Identity Data Models
# =============================================================================
"""
Pydantic models for visually extracted document fields and the identity
signal produced by reconciling them with the MRZ.

VisualFields mirrors the shape a document-analysis service returns: a
sparse mapping of field name to extracted value plus a document-level
confidence. Plain strings, dates and dicts are accepted for each field so
callers can pass decoded JSON straight through.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from kycsignals.identity.mrz import MrzRecord


class VisualField(BaseModel):
    """A single field extracted from the document image."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    content: Optional[str] = None
    value_string: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("value_string", "valueString")
    )
    value_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("value_date", "valueDate")
    )
    confidence: Optional[float] = None

    def text(self) -> Optional[str]:
        """Content if present, else the string value; blanks read as None."""
        for candidate in (self.content, self.value_string):
            if candidate is not None and candidate.strip():
                return candidate
        return None


class VisualFields(BaseModel):
    """Fields extracted by the document-analysis step. Read-only."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    fields: dict[str, VisualField] = Field(default_factory=dict)
    confidence: Optional[float] = None
    document_ref: Optional[str] = None
    content: Optional[str] = Field(default=None, description="Raw OCR text of the page")

    @field_validator("fields", mode="before")
    @classmethod
    def coerce_fields(cls, v: Any) -> Any:
        """Accept bare values in place of VisualField objects."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        coerced: dict[str, Any] = {}
        for key, value in v.items():
            if value is None:
                continue
            if isinstance(value, (VisualField, dict)):
                coerced[key] = value
            elif isinstance(value, datetime):
                coerced[key] = {"value_date": value.date()}
            elif isinstance(value, date):
                coerced[key] = {"value_date": value}
            else:
                coerced[key] = {"content": str(value)}
        return coerced

    def text(self, key: str) -> Optional[str]:
        visual = self.fields.get(key)
        return visual.text() if visual else None

    def iso_date(self, key: str) -> Optional[str]:
        """
        Date field as a YYYY-MM-DD string.

        A typed date wins; a string value is only accepted when it is
        already in ISO form.
        """
        visual = self.fields.get(key)
        if visual is None:
            return None
        if visual.value_date is not None:
            return visual.value_date.isoformat()
        for candidate in (visual.value_string, visual.content):
            if candidate and _is_iso_date(candidate.strip()):
                return candidate.strip()
        return None


def _is_iso_date(value: str) -> bool:
    try:
        return len(value) == 10 and date.fromisoformat(value).isoformat() == value
    except ValueError:
        return False


class IdentityInfo(BaseModel):
    """Resolved identity attributes (visual first, MRZ fallback)."""

    model_config = ConfigDict(frozen=True)

    full_name: Optional[str] = None
    dob: Optional[str] = None
    doc_no: Optional[str] = None
    country: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "fullName": self.full_name,
            "dob": self.dob,
            "docNo": self.doc_no,
            "country": self.country,
        }


class IdentitySignal(BaseModel):
    """
    Identity verification signal handed to the downstream risk scorer.

    identity_mismatch is only ever asserted when the MRZ passed its own
    check digits and both sides of the disagreeing comparison were present.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id_info: IdentityInfo = Field(default_factory=IdentityInfo)
    mrz_valid: bool = False
    identity_mismatch: bool = False
    expired: bool = False
    cropping_hint: bool = False
    quality: float = Field(default=0.0, ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)

    ok: bool = True
    error: Optional[str] = None
    document_ref: Optional[str] = None
    mismatched_fields: list[str] = Field(default_factory=list)
    mrz: Optional[MrzRecord] = None

    def to_doc_signals(self) -> dict:
        """Serialize into the camelCase doc-signals document."""
        payload: dict[str, Any] = {"documentRef": self.document_ref}
        if self.error:
            payload["error"] = self.error
        payload.update({
            "idInfo": self.id_info.to_dict(),
            "mrzValid": self.mrz_valid,
            "identityMismatch": self.identity_mismatch,
            "expired": self.expired,
            "quality": self.quality,
            "croppingHint": self.cropping_hint,
            "reasons": list(self.reasons),
            "ok": self.ok,
        })
        if self.mismatched_fields:
            payload["mismatchedFields"] = list(self.mismatched_fields)
        if self.mrz is not None:
            payload["mrz"] = self.mrz.to_dict()
        return payload
