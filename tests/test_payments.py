"""
Tests for works/payments.py — payment correlation and the payment report

Inline and post-pass modes must produce the same per-row values; only
"Payment Success" amounts count toward total_paid; a failing lookup
defaults that row alone.
"""
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import doc_id  # noqa: E402
from works import payments  # noqa: E402
from works.database import ConnectionPool, get_pool  # noqa: E402
from works.errors import WorkNotFoundError  # noqa: E402
from works.identity import WorkKey  # noqa: E402
from works.models import PaymentInfo  # noqa: E402
from works.normalizer import load_doc  # noqa: E402
from works.service import list_recommended_works  # noqa: E402


@pytest.fixture
def pool(config):
    return get_pool(config)


def _rows(pool, *ids):
    with pool.connection() as conn:
        found = {
            r["id"]: load_doc(r["doc"])
            for r in conn.execute("SELECT id, doc FROM works_recommended").fetchall()
        }
    return [(i, found[i]) for i in ids]


class TestPaymentInfo:
    def test_rounding_and_types(self):
        info = payments.payment_info(1, 100.004, "2")
        assert info.has_payments is True
        assert info.total_paid == 100.0
        assert info.payment_count == 2

    def test_nulls(self):
        assert payments.payment_info(0, None, None) == PaymentInfo()


class TestLookupPayment:
    def test_success_only_total(self, pool):
        with pool.connection() as conn:
            info = payments.lookup_payment(conn, WorkKey(902, "Lok Sabha", 18))
        assert info == PaymentInfo(has_payments=True, total_paid=70000.0, payment_count=3)

    def test_pending_only(self, pool):
        with pool.connection() as conn:
            info = payments.lookup_payment(conn, WorkKey(904, "Rajya Sabha", None))
        assert info == PaymentInfo(has_payments=False, total_paid=0.0, payment_count=1)

    def test_house_and_term_must_match(self, pool):
        # workId 501 has payments in the upper house and in term 17 as well.
        with pool.connection() as conn:
            info = payments.lookup_payment(conn, WorkKey(501, "Lok Sabha", 18))
        assert info == PaymentInfo(has_payments=True, total_paid=3000.0, payment_count=1)

    def test_rajya_sabha_ignores_term(self, pool):
        with pool.connection() as conn:
            info = payments.lookup_payment(conn, WorkKey(501, "Rajya Sabha", None))
        assert info.total_paid == 5000.0

    def test_no_key(self, pool):
        with pool.connection() as conn:
            assert payments.lookup_payment(conn, None) == PaymentInfo()


class TestAttachPayments:
    def test_order_preserved(self, pool):
        rows = _rows(pool, doc_id("d", 7), doc_id("d", 5), doc_id("d", 4))
        infos = payments.attach_payments(pool, rows)
        assert [i.total_paid for i in infos] == [100000.0, 0.0, 70000.0]

    def test_empty(self, pool):
        assert payments.attach_payments(pool, []) == []

    def test_failing_lookup_defaults_that_row(self, pool, monkeypatch):
        real = payments.lookup_payment

        def flaky(conn, key):
            if key is not None and key.work_id == 905:
                raise sqlite3.OperationalError("disk I/O error")
            return real(conn, key)

        monkeypatch.setattr(payments, "lookup_payment", flaky)
        rows = _rows(pool, doc_id("d", 7), doc_id("d", 4))
        infos = payments.attach_payments(pool, rows)
        assert infos[0] == PaymentInfo()
        assert infos[1].total_paid == 70000.0

    def test_no_free_connection_defaults_rows(self, pool, works_db):
        rows = _rows(pool, doc_id("d", 7), doc_id("d", 4))
        tight = ConnectionPool(works_db, max_size=1, acquire_timeout=0.05)
        held = tight.acquire()
        try:
            infos = payments.attach_payments(tight, rows)
        finally:
            tight.release(held)
            tight.close_all()
        assert infos == [PaymentInfo(), PaymentInfo()]


class TestInlineMatchesPostPass:
    def test_same_values_for_every_row(self, full_config):
        inline = list_recommended_works(config=full_config, has_payments="true", limit=50)
        assert inline.items
        post = {w.id: w for w in list_recommended_works(config=full_config, limit=50).items}
        for work in inline.items:
            other = post[work.id]
            assert (work.has_payments, work.total_paid, work.payment_count) == \
                (other.has_payments, other.total_paid, other.payment_count)

    def test_unpaid_rows(self, full_config):
        result = list_recommended_works(config=full_config, has_payments="false", limit=50)
        by_id = {w.id: w for w in result.items}
        assert set(by_id) == {doc_id("d", 5), doc_id("d", 6)}
        assert by_id[doc_id("d", 6)].payment_count == 1
        assert by_id[doc_id("d", 6)].total_paid == 0.0


class TestWorkPaymentReport:
    def test_report(self, pool):
        with pool.connection() as conn:
            report = payments.get_work_payments(conn, "902", "2024-06-01T00:00:00+00:00")
        assert report.work_id == 902
        assert report.summary.total_installments == 3
        assert report.summary.total_amount_paid == 70000.0
        assert report.summary.successful_payments == 2
        assert report.summary.pending_payments == 1
        assert report.summary.first_payment_date == "2024-04-01T00:00:00Z"
        assert report.summary.last_payment_date == "2024-05-01T00:00:00Z"
        assert [p.amount for p in report.all_payments] == [20000.0, 10000.0, 50000.0]

    def test_timeline_grouped_newest_first(self, pool):
        with pool.connection() as conn:
            report = payments.get_work_payments(conn, "902", "now")
        assert [d.date for d in report.payment_timeline] == ["2024-05-01", "2024-04-01"]
        assert report.payment_timeline[0].count == 2
        assert report.payment_timeline[0].total_amount == 30000.0

    def test_camel_case_response(self, pool):
        with pool.connection() as conn:
            body = payments.get_work_payments(conn, "902", "now").to_response()
        assert set(body) == {"workId", "workDetails", "summary", "paymentTimeline",
                             "allPayments", "lastUpdated"}
        assert "totalAmountPaid" in body["summary"]
        assert set(body["workDetails"]) == {"description", "mpName", "constituency", "ida"}

    def test_unknown_work(self, pool):
        with pool.connection() as conn:
            with pytest.raises(WorkNotFoundError):
                payments.get_work_payments(conn, "99999", "now")

    def test_blank_work_id(self, pool):
        with pool.connection() as conn:
            with pytest.raises(WorkNotFoundError):
                payments.get_work_payments(conn, "  ", "now")
