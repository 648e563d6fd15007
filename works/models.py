"""
Pydantic parameter and response models for the works engine.

Item models keep the snake_case field names of the canonical record.  The
envelope models (pagination, summaries, payment reports) serialize with
camelCase aliases because that is the shape dashboard callers consume.

Optional fields default to None so that partially populated documents still
produce valid records.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Parameter bag ─────────────────────────────────────────────────────────────

class WorksQuery(BaseModel):
    """Flat parameter bag accepted by the list operations.

    Every filter is a raw string (or None) exactly as received from the
    caller; the filter compiler decides what counts as empty.  ``page`` and
    ``limit`` are expected to be sanitized upstream.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    page: int = Field(1, ge=1, description="1-based page number")
    limit: int = Field(20, ge=1, description="Items per page")
    sort: str | None = Field(None, description="Sort field, '-' prefix for descending", examples=["-recommendationDate"])
    mp_id: str | None = Field(None, description="Representative id or literal name")
    state: str | None = Field(None, description="Case-insensitive state substring")
    constituency: str | None = Field(None, description="Exact sub-region name")
    district: str | None = Field(None, description="Exact sub-region name (historical alias)")
    category: str | None = Field(None, description="Case-insensitive category substring")
    year: str | None = Field(None, description="Completion/recommendation year", examples=["2024"])
    status: str | None = Field(None, description="Recommended works only: exact status")
    min_cost: str | None = Field(None, description="Inclusive lower cost bound")
    max_cost: str | None = Field(None, description="Inclusive upper cost bound")
    search: str | None = Field(None, description="Case-insensitive description/location substring")
    has_payments: str | None = Field(None, description="Recommended works only: 'true'/'1' or anything else")
    house: str | None = Field(None, description="'Lok Sabha', 'Rajya Sabha' or omitted for both")
    ls_term: str | None = Field(None, description="Lok Sabha term number or 'both'", examples=["18"])

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def echo(self, keys: tuple[str, ...]) -> dict[str, Any]:
        """Return the requested filter values echoed back to the caller."""
        return {k: getattr(self, k) for k in keys}


# ── Canonical work records ────────────────────────────────────────────────────

class MPDetails(BaseModel):
    """Representative details denormalized onto each work."""
    name: str | None = None
    constituency: str | None = None
    house: str | None = None


class PaymentInfo(BaseModel):
    """Per-work payment correlation; identical for inline and post-pass modes."""
    has_payments: bool = Field(False, description="Any 'Payment Success' expenditure exists")
    total_paid: float = Field(0.0, description="Sum of success-status amounts")
    payment_count: int = Field(0, description="Installments of any status")


class CompletedWork(BaseModel):
    """Canonical completed work (list view)."""
    id: str = Field(..., description="Document identifier", examples=["64f1c2a9e4b0a1d2c3b4a5f6"])
    work_id: int | str | None = Field(None, description="Work identifier shared with recommended works", examples=[501])
    house: str | None = None
    ls_term: int | None = Field(None, description="Lok Sabha term, None for Rajya Sabha records")
    work_description: str | None = None
    category: str | None = None
    cost: float = Field(0.0, description="Final cost")
    completion_date: date | None = None
    completion_year: int | None = None
    location: str | None = None
    district: str | None = None
    state: str | None = None
    beneficiaries: float = 0.0
    mp_details: MPDetails = Field(default_factory=MPDetails)


class RecommendedWorkBase(BaseModel):
    """Canonical recommended work fields shared by list and detail views."""
    id: str = Field(..., description="Document identifier")
    work_id: int | str | None = None
    house: str | None = None
    ls_term: int | None = None
    work_description: str | None = None
    category: str | None = None
    estimated_cost: float = Field(0.0, description="Recommended cost")
    recommended_date: date | None = None
    recommended_year: int | None = None
    status: str = "Recommended"
    priority: str | int | None = None
    location: str | None = None
    district: str | None = None
    state: str | None = None
    expected_beneficiaries: float = 0.0
    mp_details: MPDetails = Field(default_factory=MPDetails)


class RecommendedWork(RecommendedWorkBase, PaymentInfo):
    """Recommended work (list view) with payment correlation."""


class GpsCoordinates(BaseModel):
    latitude: float | None = None
    longitude: float | None = None


class RepresentativeOut(BaseModel):
    """Directory record joined onto detail views by representative name."""
    id: str | None = None
    name: str | None = None
    constituency: str | None = None
    house: str | None = None
    state: str | None = None


class CompletedWorkDetail(CompletedWork):
    """Completed work with the rich detail-only fields."""
    implementing_agency: str | None = None
    photos_before: list[str] = Field(default_factory=list)
    photos_after: list[str] = Field(default_factory=list)
    gps_coordinates: GpsCoordinates = Field(default_factory=GpsCoordinates)
    status_timeline: Any = None
    quality_rating: float = 0.0
    impact_metrics: dict[str, Any] = Field(default_factory=dict)
    representative: RepresentativeOut | None = None
    created_at: str | None = None
    updated_at: str | None = None


class RecommendedWorkDetail(RecommendedWorkBase):
    """Recommended work with the rich detail-only fields (no payment data)."""
    implementing_agency: str | None = None
    gps_coordinates: GpsCoordinates = Field(default_factory=GpsCoordinates)
    status_timeline: Any = None
    approval_status: Any = None
    expected_completion_date: str | None = None
    funding_source: str | None = None
    environmental_clearance: Any = None
    technical_feasibility: Any = None
    representative: RepresentativeOut | None = None
    created_at: str | None = None
    updated_at: str | None = None


# ── Envelopes ─────────────────────────────────────────────────────────────────

class Pagination(_CamelModel):
    """Pagination block of a list response."""
    page: int = Field(..., examples=[1])
    total_pages: int = Field(..., examples=[12])
    total_count: int = Field(..., description="Rows matching filter + gate + dedup", examples=[231])
    has_next: bool
    has_prev: bool
    is_approximate: bool = Field(False, description="True when the count came from a fast or degraded pass")

    @classmethod
    def build(cls, page: int, limit: int, total: int, approximate: bool = False) -> "Pagination":
        total_pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(
            page=page,
            total_pages=total_pages,
            total_count=total,
            has_next=page * limit < total,
            has_prev=page > 1,
            is_approximate=approximate,
        )


class StatusBucket(_CamelModel):
    """One row of the recommended-works status distribution."""
    status: str
    count: int
    total_cost: float


class CompletedSummary(_CamelModel):
    total_cost: float = 0.0
    avg_cost: float = 0.0
    total_works: int = 0
    unique_categories: list[str] = Field(default_factory=list)
    unique_districts: list[str] = Field(default_factory=list)
    total_beneficiaries: float = 0.0


class RecommendedSummary(_CamelModel):
    total_estimated_cost: float = 0.0
    avg_estimated_cost: float = 0.0
    total_works: int = 0
    unique_categories: list[str] = Field(default_factory=list)
    unique_districts: list[str] = Field(default_factory=list)
    total_expected_beneficiaries: float = 0.0
    status_distribution: list[StatusBucket] = Field(default_factory=list)


class _Envelope(_CamelModel):
    pagination: Pagination
    filters: dict[str, Any] = Field(default_factory=dict)
    last_updated: str
    strategy: Literal["fast", "full"] = "full"

    def to_response(self) -> dict[str, Any]:
        """Return the JSON-ready response dict (camelCase envelope keys)."""
        return self.model_dump(mode="json", by_alias=True)


class CompletedWorksPage(_Envelope):
    items: list[CompletedWork]
    summary: CompletedSummary


class RecommendedWorksPage(_Envelope):
    items: list[RecommendedWork]
    summary: RecommendedSummary


# ── Reference lists ───────────────────────────────────────────────────────────

class CategoryTotal(_CamelModel):
    category: str | None
    work_count: int
    total_cost: float
    avg_cost: float


class WorkCategories(_CamelModel):
    completed: list[CategoryTotal]
    recommended: list[CategoryTotal]
    last_updated: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SubRegion(_CamelModel):
    constituency: str | None
    state: str | None
    project_count: int
    total_amount: float


class SubRegions(_CamelModel):
    constituencies: list[SubRegion]
    states: list[str]
    total_constituencies: int
    total_states: int
    last_updated: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── Payment report ────────────────────────────────────────────────────────────

class PaymentRecord(_CamelModel):
    amount: float
    date: str | None
    status: str | None
    vendor: str | None = None
    ida: str | None = None


class PaymentDay(_CamelModel):
    date: str
    payments: list[PaymentRecord]
    total_amount: float
    count: int


class PaymentSummary(_CamelModel):
    total_installments: int
    total_amount_paid: float
    successful_payments: int
    pending_payments: int
    first_payment_date: str | None = None
    last_payment_date: str | None = None


class WorkPaymentReport(_CamelModel):
    work_id: int | str
    work_details: dict[str, Any]
    summary: PaymentSummary
    payment_timeline: list[PaymentDay]
    all_payments: list[PaymentRecord]
    last_updated: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DetailResponse(_CamelModel):
    data: CompletedWorkDetail | RecommendedWorkDetail
    last_updated: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
