"""
Pytest fixtures for the works engine tests.

Provides a temporary SQLite works database built through works.schema and
loaded with a small, fully hand-checked data set:

  - completed works in both schema generations (c02 is legacy, with its
    cost stored as the string "45,000" under the legacy ``cost`` field);
  - recommended works covering the identity cases: r01 has a completed
    twin (501, Rajya Sabha, 18); r02/r03 share workId 900 in the Lok Sabha
    with term null / 17, and only term 17 has been completed; r09 reuses
    workId 501 in the other house;
  - expenditures with success and pending installments, including records
    for workId 501 in the wrong house and the wrong term;
  - two representatives in the directory.

With the default gate (both houses, Lok Sabha term 18) the visible
recommended works are r04, r05, r06, r07 and r09.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import WorksConfig  # noqa: E402
from works.database import close_pools  # noqa: E402
from works.schema import create_works_db, insert_documents  # noqa: E402

RS = "Rajya Sabha"
LS = "Lok Sabha"
UP = "Uttar Pradesh"


def doc_id(prefix: str, n: int) -> str:
    """Deterministic 24-hex document id, e.g. doc_id("c", 1)."""
    return (prefix * 22) + f"{n:02d}"


MP_ASHA = doc_id("a", 1)
MP_RAVI = doc_id("a", 2)

MPS = [
    {"id": MP_ASHA, "name": "Asha Verma", "house": LS, "state": UP, "constituency": "Mathura"},
    {"id": MP_RAVI, "name": "Ravi Kumar", "house": RS, "state": "Kerala", "constituency": None},
]

COMPLETED = [
    {"id": doc_id("c", 1), "workId": 501, "house": RS, "lsTerm": 18,
     "workDescription": "School building", "workCategory": "Education",
     "finalAmount": 210000, "completedDate": "2024-02-10", "ida": "Mathura Town",
     "constituency": "Mathura", "state": UP, "mpName": "Ravi Kumar", "beneficiaries": 300,
     "implementing_agency": "PWD", "latitude": 27.49, "longitude": 77.67,
     "before_photos": ["b1.jpg"], "after_photos": ["a1.jpg", "a2.jpg"],
     "quality_rating": 4.5, "schools_connected": 2, "createdAt": "2024-02-11T09:00:00Z"},
    {"id": doc_id("c", 2), "work_id": 610, "house": LS, "lsTerm": 18,
     "work_description": "Hand pump installation", "category": "Water",
     "cost": "45,000", "completion_date": "2023-11-05", "location": "Village Rampur",
     "district": "Mathurapur", "state": UP, "mpName": "Asha Verma", "beneficiaries": 120},
    {"id": doc_id("c", 3), "workId": 900, "house": LS, "lsTerm": 17,
     "workDescription": "Community hall", "workCategory": "Infrastructure",
     "finalAmount": 500000, "completedDate": "2024-06-01", "ida": "Mathura East",
     "constituency": "Mathura", "state": UP, "mpName": "Asha Verma", "beneficiaries": 1000},
    {"id": doc_id("c", 4), "workId": 700, "house": LS, "lsTerm": 17,
     "workDescription": "Road repair", "workCategory": "Roads",
     "finalAmount": 150000, "completedDate": "2022-08-15", "ida": "Kochi Port",
     "constituency": "Kochi", "state": "Kerala", "mpName": "Other MP"},
    {"id": doc_id("c", 5), "workId": 711, "house": LS,
     "workDescription": "Library", "workCategory": "Education",
     "finalAmount": 90000, "completedDate": "2024-01-20", "ida": "Mathura Library",
     "constituency": "Mathura", "state": UP, "mpName": "Asha Verma"},
]

RECOMMENDED = [
    {"id": doc_id("d", 1), "workId": 501, "house": RS, "lsTerm": 18,
     "workDescription": "School building", "workCategory": "Education",
     "recommendedAmount": 200000, "recommendationDate": "2023-05-01", "ida": "Mathura Town",
     "constituency": "Mathura", "state": UP, "mpName": "Ravi Kumar",
     "expected_beneficiaries": 300},
    {"id": doc_id("d", 2), "workId": 900, "house": LS,
     "workDescription": "Community hall extension", "workCategory": "Infrastructure",
     "recommendedAmount": 80000, "recommendationDate": "2024-01-15", "ida": "Mathura East",
     "constituency": "Mathura", "state": UP, "mpName": "Asha Verma"},
    {"id": doc_id("d", 3), "workId": 900, "house": LS, "lsTerm": 17,
     "workDescription": "Community hall", "workCategory": "Infrastructure",
     "recommendedAmount": 450000, "recommendationDate": "2023-03-20", "ida": "Mathura East",
     "constituency": "Mathura", "state": UP, "mpName": "Asha Verma"},
    {"id": doc_id("d", 4), "workId": 902, "house": LS, "lsTerm": 18,
     "workDescription": "Drinking water pipeline", "workCategory": "Water",
     "recommendedAmount": 120000, "recommendationDate": "2024-03-10",
     "ida": "Mathurapur Village", "constituency": "Mathurapur", "state": UP,
     "mpName": "Asha Verma", "status": "Sanctioned", "priority": "High",
     "expected_beneficiaries": 800, "funding_source": "MPLADS"},
    {"id": doc_id("d", 5), "work_id": 903, "house": LS, "lsTerm": 18,
     "work_description": "Solar street lights 50% subsidy", "category": "Energy",
     "estimated_cost": 60000, "recommended_date": "2024-07-22", "location": "Mathura Ghat",
     "district": "Mathura", "state": UP, "mpName": "Asha Verma"},
    {"id": doc_id("d", 6), "workId": 904, "house": RS,
     "workDescription": "Primary health centre", "workCategory": "Health",
     "recommendedAmount": 300000, "recommendationDate": "2023-12-01", "ida": "Kochi Fort",
     "constituency": "Kochi", "state": "Kerala", "mpName": "Ravi Kumar",
     "status": "Sanctioned", "expected_beneficiaries": 500},
    {"id": doc_id("d", 7), "workId": 905, "house": LS, "lsTerm": 18,
     "workDescription": "Road widening", "workCategory": "Roads",
     "recommendedAmount": 250000, "recommendationDate": "2024-09-05", "ida": "Agra Road",
     "constituency": "Agra", "state": UP, "mpName": "Other MP", "status": "Recommended"},
    {"id": doc_id("d", 8), "workId": 906, "house": LS, "lsTerm": 17,
     "workDescription": "Bus shelter", "workCategory": "Infrastructure",
     "recommendedAmount": 40000, "recommendationDate": "2022-10-10", "ida": "Kochi Bus Stand",
     "constituency": "Kochi", "state": "Kerala", "mpName": "Other MP"},
    {"id": doc_id("d", 9), "workId": 501, "house": LS, "lsTerm": 18,
     "workDescription": "School building annex", "workCategory": "Education",
     "recommendedAmount": 90000, "recommendationDate": "2024-04-04", "ida": "Mathura Cantt",
     "constituency": "Mathura", "state": UP, "mpName": "Asha Verma"},
]


def _payment(n, work_id, house, term, amount, date, status, **extra):
    doc = {"id": doc_id("e", n), "workId": work_id, "house": house,
           "expenditureAmount": amount, "expenditureDate": date, "paymentStatus": status}
    if term is not None:
        doc["lsTerm"] = term
    doc.update(extra)
    return doc


EXPENDITURES = [
    _payment(1, 902, LS, 18, 50000, "2024-04-01T00:00:00Z", "Payment Success",
             vendor="Aqua Ltd", ida="Mathurapur Village", work="Drinking water pipeline",
             mpName="Asha Verma", constituency="Mathurapur"),
    _payment(2, 902, LS, 18, 20000, "2024-05-01T00:00:00Z", "Payment Success", vendor="Aqua Ltd"),
    _payment(3, 902, LS, 18, 10000, "2024-05-01T00:00:00Z", "Pending", vendor="Aqua Ltd"),
    _payment(4, 904, RS, None, 15000, "2024-01-10T00:00:00Z", "Pending"),
    _payment(5, 905, LS, 18, 100000, "2024-10-01T00:00:00Z", "Payment Success"),
    _payment(6, 501, RS, 18, 5000, "2023-06-01T00:00:00Z", "Payment Success"),
    _payment(7, 501, LS, 17, 7000, "2023-07-01T00:00:00Z", "Payment Success"),
    _payment(8, 501, LS, 18, 3000, "2024-05-05T00:00:00Z", "Payment Success"),
]

# Visible recommended works under the default gate, newest first.
DEFAULT_RECOMMENDED_IDS = [doc_id("d", n) for n in (7, 5, 9, 4, 6)]


def build_works_db(path: Path, completed=COMPLETED, recommended=RECOMMENDED,
                   expenditures=EXPENDITURES, mps=MPS) -> Path:
    """Create and load a works database at ``path``."""
    conn = create_works_db(path)
    insert_documents(conn, "works_completed", completed)
    insert_documents(conn, "works_recommended", recommended)
    insert_documents(conn, "expenditures", expenditures)
    insert_documents(conn, "mps", mps)
    conn.execute("PRAGMA journal_mode=DELETE")
    conn.close()
    return path


@pytest.fixture
def works_db(tmp_path) -> Path:
    """Path to a freshly loaded works database."""
    return build_works_db(tmp_path / "works.sqlite")


@pytest.fixture
def config(works_db) -> WorksConfig:
    """Engine configuration pointing at ``works_db``."""
    cfg = WorksConfig()
    cfg.db_path = works_db
    cfg.query_timeout_ms = 5000
    cfg.default_ls_term = 18
    cfg.known_ls_terms = (18, 17)
    return cfg


@pytest.fixture
def full_config(config) -> WorksConfig:
    """Configuration with the Fast Path disabled."""
    config.fast_path_max_limit = 0
    return config


@pytest.fixture(autouse=True)
def _close_pools():
    yield
    close_pools()
