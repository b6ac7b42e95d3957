"""
Test Fixtures Package.

Contains sample X12 271 eligibility responses:
- BCBS MA response where the patient is a dependent with Medicare
- Subscriber-only response
- Payer rejections and structural violations
- Degraded feeds (no envelope, custom delimiters, malformed segments)
"""

from .sample_271 import (
    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
    BCBS_MA_PATIENT_BENEFIT_COUNT,
    SUBSCRIBER_IS_PATIENT,
    SUBSCRIBER_NOT_FOUND,
    PAYER_REJECTED_NO_SUBSCRIBER,
    DEPENDENT_WITHOUT_SUBSCRIBER,
    BENEFIT_OUTSIDE_PARTY,
    NO_ENVELOPE_NO_HL,
    CUSTOM_DELIMITERS,
    MALFORMED_SEGMENTS,
)

__all__ = [
    "BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE",
    "BCBS_MA_PATIENT_BENEFIT_COUNT",
    "SUBSCRIBER_IS_PATIENT",
    "SUBSCRIBER_NOT_FOUND",
    "PAYER_REJECTED_NO_SUBSCRIBER",
    "DEPENDENT_WITHOUT_SUBSCRIBER",
    "BENEFIT_OUTSIDE_PARTY",
    "NO_ENVELOPE_NO_HL",
    "CUSTOM_DELIMITERS",
    "MALFORMED_SEGMENTS",
]
