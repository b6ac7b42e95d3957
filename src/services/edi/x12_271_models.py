"""
X12 271 Eligibility Response Models.

Immutable result of decoding one 271 document. Every optional field uses
``None`` for "not present in the response"; there are no sentinel strings.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from src.services.edi.code_tables import ACTIVE_COVERAGE_CODE, CO_INSURANCE_CODE
from src.services.edi.x12_base import DecodeWarning


Reference = Tuple[Optional[str], Optional[str]]


@dataclass(frozen=True)
class Name:
    """Name and address of an insured party (NM1, N3, N4)."""

    first: Optional[str] = None
    middle: Optional[str] = None
    last: Optional[str] = None
    suffix: Optional[str] = None
    address: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


@dataclass(frozen=True)
class BenefitDate:
    """Date from a DTP segment in a benefit loop; the value is kept raw."""

    qualifier_code: Optional[str] = None
    qualifier: Optional[str] = None
    format_qualifier: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class Benefit:
    """One eligibility or benefit information loop (EB and its trailing segments)."""

    info: Optional[str] = None
    info_code: Optional[str] = None
    coverage_level: Optional[str] = None
    service_type: Optional[str] = None
    service_type_codes: FrozenSet[str] = frozenset()
    insurance_type: Optional[str] = None
    insurance_type_code: Optional[str] = None
    plan_coverage_description: Optional[str] = None
    time_period: Optional[str] = None
    monetary_amount: Optional[str] = None
    percent: Optional[str] = None
    quantity: Optional[str] = None
    yes_no_response_code: Optional[str] = None
    plan_network_indicator: Optional[str] = None
    date_qualifier: Optional[str] = None
    date_of_service: Optional[str] = None
    messages: Tuple[str, ...] = ()
    dates: Tuple[BenefitDate, ...] = ()
    references: Tuple[Reference, ...] = ()

    @property
    def active_coverage(self) -> bool:
        return self.info_code == ACTIVE_COVERAGE_CODE

    @property
    def co_insurance(self) -> bool:
        return self.info_code == CO_INSURANCE_CODE


@dataclass(frozen=True)
class Party:
    """Subscriber or dependent with the benefits reported for them."""

    name: Name = field(default_factory=Name)
    benefits: Tuple[Benefit, ...] = ()
    member_id: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    references: Tuple[Reference, ...] = ()

    @property
    def has_active_coverage(self) -> bool:
        return any(b.active_coverage for b in self.benefits)


@dataclass(frozen=True)
class Rejection:
    """Request validation (AAA) returned by the payer."""

    valid: bool
    reject_reason_code: Optional[str] = None
    reject_reason: Optional[str] = None
    follow_up_action_code: Optional[str] = None


@dataclass(frozen=True)
class EligibilityResponse:
    """
    Decoded 271 eligibility response for one subscriber.

    ``patient`` is the same object as ``dependent`` when the response has a
    dependent loop, otherwise the same object as ``subscriber``.
    """

    subscriber: Party
    patient: Party
    dependent: Optional[Party] = None
    payer_name: Optional[str] = None
    receiver_name: Optional[str] = None
    trace_number: Optional[str] = None
    control_number: Optional[str] = None
    rejections: Tuple[Rejection, ...] = ()
    warnings: Tuple[DecodeWarning, ...] = ()

    @property
    def is_active(self) -> bool:
        """Patient has at least one active coverage benefit."""
        return self.patient.has_active_coverage

    @property
    def is_rejected(self) -> bool:
        return any(not r.valid for r in self.rejections)

    @property
    def patient_is_dependent(self) -> bool:
        return self.dependent is not None and self.patient is self.dependent
