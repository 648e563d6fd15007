"""MPLADS works reconciliation and aggregation engine.

The caller-facing operations live in ``works.service``; everything else is
an internal building block (normalizer, filter compiler, house/term gate,
identity matcher, planner, aggregate calculator, payment correlator).
"""

from works.errors import (
    InvalidIdentifierError,
    QueryTimeoutError,
    WorkNotFoundError,
    WorksError,
)
from works.models import WorksQuery
from works.service import (
    get_completed_work,
    get_recommended_work,
    get_sub_regions,
    get_work_categories,
    get_work_payments,
    list_completed_works,
    list_recommended_works,
)

__all__ = [
    "WorksError",
    "InvalidIdentifierError",
    "WorkNotFoundError",
    "QueryTimeoutError",
    "WorksQuery",
    "list_completed_works",
    "list_recommended_works",
    "get_work_categories",
    "get_sub_regions",
    "get_completed_work",
    "get_recommended_work",
    "get_work_payments",
]
