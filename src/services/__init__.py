"""
Services Layer for the Eligibility System.

Exports X12 271 decoding and eligibility verification services.
"""

from src.services.edi import (
    X12271Parser,
    X12Tokenizer,
    X12ParseError,
    X12ValidationError,
    EligibilityResponse,
    EligibilityService,
    EligibilityCheckResult,
    get_eligibility_service,
)

__all__ = [
    "X12271Parser",
    "X12Tokenizer",
    "X12ParseError",
    "X12ValidationError",
    "EligibilityResponse",
    "EligibilityService",
    "EligibilityCheckResult",
    "get_eligibility_service",
]
