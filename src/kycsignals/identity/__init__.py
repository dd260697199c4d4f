"""
Identity verification module.

This module contains:
- MRZ decoding and ICAO 9303 check-digit validation
- Visual field models and the identity signal
- IdentityReconciler: visual vs MRZ reconciliation
"""

from kycsignals.identity.models import IdentityInfo, IdentitySignal, VisualField, VisualFields
from kycsignals.identity.mrz import (
    MrzCheckResults,
    MrzRecord,
    compute_check_digit,
    is_valid_check_digit,
    mrz_char_value,
    parse_mrz,
    split_mrz_block,
)
from kycsignals.identity.reconciler import IdentityReconciler, extract_identity_signal

__all__ = [
    # MRZ
    "MrzCheckResults",
    "MrzRecord",
    "compute_check_digit",
    "is_valid_check_digit",
    "mrz_char_value",
    "parse_mrz",
    "split_mrz_block",
    # Models
    "IdentityInfo",
    "IdentitySignal",
    "VisualField",
    "VisualFields",
    # Reconciler
    "IdentityReconciler",
    "extract_identity_signal",
]
