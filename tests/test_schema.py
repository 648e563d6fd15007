"""
Tests for works/schema.py and works/database.py — storage and connection pool
"""
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import WorksConfig  # noqa: E402
from works.database import ConnectionPool, close_pools, get_pool  # noqa: E402
from works.errors import PoolExhaustedError  # noqa: E402
from works.schema import (  # noqa: E402
    COLLECTIONS,
    create_schema,
    create_works_db,
    insert_documents,
    new_document_id,
)


class TestCreateSchema:
    def test_tables_created(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            assert set(COLLECTIONS) <= tables
        finally:
            conn.close()

    def test_idempotent(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            assert create_schema(conn) == 0
            versions = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
            assert versions == 2
        finally:
            conn.close()

    def test_identity_index_exists(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            names = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
            assert "idx_completed_identity" in names
            assert "idx_expenditures_work" in names
        finally:
            conn.close()


class TestInsertDocuments:
    def test_id_popped_from_body(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            ids = insert_documents(conn, "mps", [{"_id": "b" * 24, "name": "X"}])
            assert ids == ["b" * 24]
            doc = conn.execute("SELECT doc FROM mps").fetchone()[0]
            assert "_id" not in doc
        finally:
            conn.close()

    def test_generated_id(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            ids = insert_documents(conn, "mps", [{"name": "X"}, {"name": "Y"}])
            assert len(set(ids)) == 2
            assert conn.execute("SELECT COUNT(*) FROM mps").fetchone()[0] == 2
        finally:
            conn.close()

    def test_bad_id_rejected(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            with pytest.raises(ValueError):
                insert_documents(conn, "mps", [{"id": "xyz"}])
        finally:
            conn.close()

    def test_unknown_collection(self, tmp_path):
        conn = create_works_db(tmp_path / "w.sqlite")
        try:
            with pytest.raises(ValueError):
                insert_documents(conn, "works", [{}])
        finally:
            conn.close()

    def test_new_document_id_format(self):
        value = new_document_id()
        assert len(value) == 24
        int(value, 16)


class TestConnectionPool:
    def test_read_only(self, works_db):
        pool = ConnectionPool(works_db, max_size=2)
        try:
            with pool.connection() as conn:
                with pytest.raises(sqlite3.OperationalError):
                    conn.execute("DELETE FROM mps")
        finally:
            pool.close_all()

    def test_functions_registered(self, works_db):
        pool = ConnectionPool(works_db, max_size=1)
        try:
            with pool.connection() as conn:
                assert conn.execute("SELECT works_num('45,000')").fetchone()[0] == 45000.0
                assert conn.execute("SELECT works_year('2023-11-05')").fetchone()[0] == 2023
        finally:
            pool.close_all()

    def test_connection_reused(self, works_db):
        pool = ConnectionPool(works_db, max_size=1)
        try:
            first = pool.acquire()
            pool.release(first)
            assert pool.acquire() is first
            pool.release(first)
        finally:
            pool.close_all()

    def test_exhausted_pool_raises(self, works_db):
        pool = ConnectionPool(works_db, max_size=1, acquire_timeout=0.05)
        held = pool.acquire()
        try:
            with pytest.raises(PoolExhaustedError):
                pool.acquire()
        finally:
            pool.release(held)
            pool.close_all()

    def test_get_pool_cached_per_path(self, config):
        assert get_pool(config) is get_pool(config)
        close_pools()

    def test_missing_database(self, tmp_path):
        cfg = WorksConfig()
        cfg.db_path = tmp_path / "missing.sqlite"
        with pytest.raises(FileNotFoundError):
            get_pool(cfg)
