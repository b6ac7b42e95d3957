"""
X12 EDI Services for Real-Time Eligibility.

Provides X12 271 eligibility response decoding:
- Segment tokenizer with ISA delimiter discovery
- Loop assembly (source, receiver, subscriber, dependent, benefit)
- Code table lookups
- Entity and benefit extraction into an immutable response model
- Eligibility service combining the CORE II gateway and the decoder
"""

from src.services.edi.x12_base import (
    SegmentID,
    X12Segment,
    X12Loop,
    X12Tokenizer,
    DecodeWarning,
    X12ValidationError,
    X12ParseError,
    StructuralViolationError,
    MissingRequiredLoopError,
)
from src.services.edi.x12_271_loops import (
    LoopKind,
    LoopTree,
    X12271LoopAssembler,
)
from src.services.edi.x12_271_models import (
    EligibilityResponse,
    Party,
    Name,
    Benefit,
    BenefitDate,
    Rejection,
)
from src.services.edi.x12_271_parser import X12271Parser
from src.services.edi.eligibility_service import (
    EligibilityService,
    EligibilityCheckResult,
    EligibilityCheckStatus,
    EligibilityErrorCode,
    get_eligibility_service,
)

__all__ = [
    # Base
    "SegmentID",
    "X12Segment",
    "X12Loop",
    "X12Tokenizer",
    "DecodeWarning",
    "X12ValidationError",
    "X12ParseError",
    "StructuralViolationError",
    "MissingRequiredLoopError",
    # Loops
    "LoopKind",
    "LoopTree",
    "X12271LoopAssembler",
    # 271 Models
    "EligibilityResponse",
    "Party",
    "Name",
    "Benefit",
    "BenefitDate",
    "Rejection",
    # 271 Parser
    "X12271Parser",
    # Eligibility Service
    "EligibilityService",
    "EligibilityCheckResult",
    "EligibilityCheckStatus",
    "EligibilityErrorCode",
    "get_eligibility_service",
]
