"""
Tests for visual vs MRZ identity reconciliation.
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import SPECIMEN_LINE1, SPECIMEN_LINE2
from kycsignals.identity import IdentitySignal, VisualFields, extract_identity_signal
from kycsignals.identity.reconciler import (
    REASON_CROPPED,
    REASON_EXPIRED,
    REASON_MISMATCH,
    REASON_MRZ_INVALID,
    clamp_quality,
    first_non_blank,
    is_expired,
    join_name,
    normalize_identifier,
)

BEFORE_EXPIRY = date(2010, 1, 1)
AFTER_EXPIRY = date(2013, 1, 1)

# Specimen with the birth-date check digit broken
BROKEN_LINE2 = SPECIMEN_LINE2[:19] + "3" + SPECIMEN_LINE2[20:]


def _visual(**fields) -> dict:
    return {"fields": fields, "confidence": 0.9, "document_ref": "doc-1"}


def _signal(visual, line2: str | None = SPECIMEN_LINE2, today: date = BEFORE_EXPIRY) -> IdentitySignal:
    return extract_identity_signal(visual, SPECIMEN_LINE1, line2, today=today)


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════


class TestHelpers:

    def test_first_non_blank(self):
        assert first_non_blank(None, "  ", " x ", "y") == "x"
        assert first_non_blank(None, "") is None

    def test_join_name(self):
        assert join_name("Anna  Maria", "Eriksson") == "Anna Maria Eriksson"
        assert join_name(None, "Eriksson") == "Eriksson"
        assert join_name(" ", None) is None

    def test_normalize_identifier(self):
        assert normalize_identifier("l898-902 c3") == "L898902C3"

    @pytest.mark.parametrize("confidence,expected", [
        (None, 0.0), (0.42, 0.42), (1.7, 1.0), (-0.3, 0.0), (float("nan"), 0.0),
    ])
    def test_clamp_quality(self, confidence, expected):
        assert clamp_quality(confidence) == expected

    def test_is_expired(self):
        assert is_expired("2012-04-15", AFTER_EXPIRY) is True
        assert is_expired("2012-04-15", date(2012, 4, 15)) is False
        assert is_expired("15/04/2012", AFTER_EXPIRY) is False
        assert is_expired(None, AFTER_EXPIRY) is False


# ═══════════════════════════════════════════════════════════════════════════════
# FIELD SELECTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestFieldSelection:

    def test_visual_wins_over_mrz(self):
        signal = _signal(_visual(
            FullName="Anna Maria Eriksson",
            DocumentNumber="L898902C3",
            DateOfBirth="1974-08-12",
            CountryRegion="Utopia",
        ))
        assert signal.id_info.full_name == "Anna Maria Eriksson"
        assert signal.id_info.country == "Utopia"
        assert signal.identity_mismatch is False

    def test_mrz_fallback_when_visual_blank(self):
        signal = _signal(_visual(FullName="   "))
        assert signal.id_info.full_name == "ANNA MARIA ERIKSSON"
        assert signal.id_info.doc_no == "L898902C3"
        assert signal.id_info.dob == "1974-08-12"
        assert signal.id_info.country == "UTO"

    @pytest.mark.parametrize("fields,expected", [
        ({"Name": "Anna Eriksson"}, "Anna Eriksson"),
        ({"FirstName": "Anna", "LastName": "Eriksson"}, "Anna Eriksson"),
        ({"GivenName": "Anna", "Surname": "Eriksson"}, "Anna Eriksson"),
        ({"GivenNames": "Anna Maria", "Surname": "Eriksson"}, "Anna Maria Eriksson"),
        ({"FullName": "A M E", "FirstName": "Anna", "LastName": "Eriksson"}, "A M E"),
    ])
    def test_name_aliases_in_priority_order(self, fields, expected):
        signal = extract_identity_signal(_visual(**fields), today=BEFORE_EXPIRY)
        assert signal.id_info.full_name == expected

    def test_typed_dates_and_service_shape(self):
        visual = {
            "fields": {
                "DateOfBirth": {"valueDate": "1974-08-12", "confidence": 0.99},
                "DocumentNumber": {"content": "", "valueString": "L898902C3"},
            },
            "confidence": 0.8,
        }
        signal = _signal(visual)
        assert signal.id_info.dob == "1974-08-12"
        assert signal.id_info.doc_no == "L898902C3"
        assert signal.identity_mismatch is False

    def test_non_iso_visual_dob_is_ignored(self):
        signal = _signal(_visual(DateOfBirth="12.08.1974"))
        assert signal.id_info.dob == "1974-08-12"

    def test_bare_field_mapping_accepted(self):
        signal = extract_identity_signal({"DocumentNumber": "AB123"}, today=BEFORE_EXPIRY)
        assert signal.ok is True
        assert signal.id_info.doc_no == "AB123"

    def test_bare_mapping_keeps_document_metadata(self):
        visual = {
            "FullName": "Anna Eriksson",
            "confidence": 0.9,
            "document_ref": "doc-9",
            "content": "edge CROPPED",
        }
        signal = extract_identity_signal(visual, today=BEFORE_EXPIRY)
        assert signal.id_info.full_name == "Anna Eriksson"
        assert signal.quality == 0.9
        assert signal.document_ref == "doc-9"
        assert signal.cropping_hint is True

    def test_bare_mapping_with_invalid_metadata(self):
        signal = extract_identity_signal({"FullName": "Anna", "confidence": "high"}, today=BEFORE_EXPIRY)
        assert signal.ok is False
        assert signal.error == "invalid-visual-fields"

    def test_mrz_read_from_visual_block(self):
        visual = _visual(MachineReadableZone=f"{SPECIMEN_LINE1}\n{SPECIMEN_LINE2}")
        signal = extract_identity_signal(visual, today=BEFORE_EXPIRY)
        assert signal.mrz_valid is True
        assert signal.id_info.doc_no == "L898902C3"


# ═══════════════════════════════════════════════════════════════════════════════
# CONSISTENCY
# ═══════════════════════════════════════════════════════════════════════════════


class TestConsistency:

    def test_matching_document_has_no_mismatch(self):
        signal = _signal(_visual(
            FullName="anna maria eriksson",
            DocumentNumber="L898902C3",
            DateOfBirth=date(1974, 8, 12),
        ))
        assert signal.mrz_valid is True
        assert signal.identity_mismatch is False
        assert signal.reasons == []

    @pytest.mark.parametrize("fields,field_name", [
        ({"FullName": "John Smith"}, "fullName"),
        ({"DocumentNumber": "X0000000"}, "docNo"),
        ({"DateOfBirth": "1975-08-12"}, "dob"),
    ])
    def test_each_comparison_can_flag(self, fields, field_name):
        signal = _signal(_visual(**fields))
        assert signal.identity_mismatch is True
        assert signal.mismatched_fields == [field_name]
        assert signal.reasons == [REASON_MISMATCH]

    def test_invalid_mrz_never_flags_mismatch(self):
        signal = _signal(_visual(FullName="John Smith", DocumentNumber="X0000000"), line2=BROKEN_LINE2)
        assert signal.mrz_valid is False
        assert signal.identity_mismatch is False
        assert signal.mismatched_fields == []
        assert signal.reasons == [REASON_MRZ_INVALID]

    def test_absent_mrz_never_flags_mismatch(self):
        signal = extract_identity_signal(
            _visual(FullName="John Smith", DocumentNumber="X0000000"), today=BEFORE_EXPIRY
        )
        assert signal.identity_mismatch is False
        assert signal.mrz_valid is False
        assert signal.reasons == []
        assert signal.mrz is None

    def test_absent_visual_side_never_flags_mismatch(self):
        signal = _signal(_visual(CountryRegion="Somewhere Else"))
        assert signal.identity_mismatch is False

    def test_short_mrz_reports_failure_without_fields(self):
        signal = _signal(_visual(FullName="John Smith"), line2=SPECIMEN_LINE2[:30])
        assert signal.mrz_valid is False
        assert signal.identity_mismatch is False
        assert signal.id_info.doc_no is None
        assert signal.reasons == [REASON_MRZ_INVALID]


# ═══════════════════════════════════════════════════════════════════════════════
# EXPIRY, CROPPING, QUALITY, REASONS
# ═══════════════════════════════════════════════════════════════════════════════


class TestDerivedSignals:

    def test_mrz_expiry_used_as_fallback(self):
        assert _signal(_visual(), today=AFTER_EXPIRY).expired is True
        assert _signal(_visual(), today=BEFORE_EXPIRY).expired is False

    def test_visual_expiry_wins(self):
        signal = _signal(_visual(DateOfExpiration="2030-01-01"), today=AFTER_EXPIRY)
        assert signal.expired is False

    def test_unparsable_expiry_fails_open(self):
        signal = extract_identity_signal(_visual(DateOfExpiration="soon"), today=AFTER_EXPIRY)
        assert signal.expired is False

    def test_cropping_hint(self):
        visual = {"fields": {}, "content": "Image appears CROPPED at the edge"}
        assert extract_identity_signal(visual, today=BEFORE_EXPIRY).cropping_hint is True

    def test_quality_clamped(self):
        visual = {"fields": {}, "confidence": 3.5}
        assert extract_identity_signal(visual, today=BEFORE_EXPIRY).quality == 1.0
        assert extract_identity_signal({"fields": {}}, today=BEFORE_EXPIRY).quality == 0.0

    def test_reason_order(self):
        visual = {
            "fields": {"FullName": "John Smith"},
            "content": "cropped frame",
        }
        signal = _signal(visual, line2=BROKEN_LINE2, today=AFTER_EXPIRY)
        assert signal.reasons == [REASON_MRZ_INVALID, REASON_EXPIRED, REASON_CROPPED]

    def test_reason_order_with_mismatch(self):
        visual = {
            "fields": {"DocumentNumber": "X0000000"},
            "content": "cropped frame",
        }
        signal = _signal(visual, today=AFTER_EXPIRY)
        assert signal.reasons == [REASON_MISMATCH, REASON_EXPIRED, REASON_CROPPED]


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT FAILURES & SERIALIZATION
# ═══════════════════════════════════════════════════════════════════════════════


class TestInputFailures:

    def test_none_visual(self):
        signal = extract_identity_signal(None, SPECIMEN_LINE1, SPECIMEN_LINE2, today=BEFORE_EXPIRY)
        assert signal.ok is False
        assert signal.error == "no-document-parsed"
        assert signal.mrz_valid is True
        assert signal.id_info.full_name == "ANNA MARIA ERIKSSON"

    def test_invalid_visual(self):
        signal = extract_identity_signal({"fields": ["not", "a", "mapping"]}, today=BEFORE_EXPIRY)
        assert signal.ok is False
        assert signal.error == "invalid-visual-fields"

    def test_visual_fields_instance(self):
        visual = VisualFields(fields={"FullName": "Anna"}, confidence=0.5)
        signal = extract_identity_signal(visual, today=BEFORE_EXPIRY)
        assert signal.id_info.full_name == "Anna"
        assert signal.quality == 0.5

    def test_caller_input_not_mutated(self):
        visual = _visual(FullName="Anna Maria Eriksson")
        snapshot = repr(visual)
        _signal(visual)
        assert repr(visual) == snapshot

    def test_to_doc_signals(self):
        payload = _signal(_visual(DocumentNumber="X0000000")).to_doc_signals()
        assert payload["documentRef"] == "doc-1"
        assert payload["idInfo"]["docNo"] == "X0000000"
        assert payload["mrzValid"] is True
        assert payload["identityMismatch"] is True
        assert payload["mismatchedFields"] == ["docNo"]
        assert payload["ok"] is True
        assert payload["mrz"]["checks"]["composite"] is True
        assert list(payload)[:2] == ["documentRef", "idInfo"]
