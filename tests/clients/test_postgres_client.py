"""Tests for PostgresClient - pooling, actor settings and transactions."""

from unittest.mock import MagicMock, call
from uuid import UUID, uuid4

import pytest

import clients.postgres_client as postgres_module
from clients.postgres_client import PostgresClient, Transaction, _convert_params
from utils.user_context import actor_context

DATABASE_URL = "postgresql://barbershop@localhost/barbershop_test"


@pytest.fixture
def pool(monkeypatch):
    """Replace the psycopg2 pool with a mock handing out one mock connection."""
    monkeypatch.setattr(PostgresClient, "_connection_pools", {})
    monkeypatch.setattr(postgres_module, "_jsonb_registered", True)

    pool = MagicMock()
    pool.getconn.return_value = MagicMock()
    monkeypatch.setattr(
        postgres_module.psycopg2.pool, "ThreadedConnectionPool", MagicMock(return_value=pool)
    )
    return pool


@pytest.fixture
def conn(pool):
    return pool.getconn.return_value


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def client(pool):
    return PostgresClient(DATABASE_URL)


class TestConvertParams:

    def test_none_passes_through(self):
        assert _convert_params(None) is None

    def test_uuids_become_strings_at_any_depth(self):
        a, b = uuid4(), uuid4()

        converted = _convert_params((a, [b], {"k": a}, 3))

        assert converted == (str(a), [str(b)], {"k": str(a)}, 3)


class TestPool:

    def test_pool_shared_per_url(self, pool):
        PostgresClient(DATABASE_URL)
        PostgresClient(DATABASE_URL)

        assert postgres_module.psycopg2.pool.ThreadedConnectionPool.call_count == 1

    def test_connection_returned_to_pool(self, client, pool, conn, cursor):
        cursor.description = None

        client.execute("UPDATE services SET is_active = false")

        pool.putconn.assert_called_once_with(conn)

    def test_close_all_pools(self, client, pool):
        PostgresClient.close_all_pools()

        pool.closeall.assert_called_once()
        assert PostgresClient._connection_pools == {}


class TestActorSettings:

    def test_actor_written_to_session(self, client, cursor, admin):
        cursor.description = None

        with actor_context(admin):
            client.execute("SELECT 1")

        assert call("SET app.current_user_id = %s", (str(admin.user_id),)) in cursor.execute.call_args_list
        assert call("SET app.current_role = %s", ("admin",)) in cursor.execute.call_args_list

    def test_no_actor_clears_settings(self, client, cursor):
        cursor.description = None

        client.execute("SELECT 1")

        assert call("SET app.current_user_id = ''") in cursor.execute.call_args_list


class TestExecuteMethods:

    def test_execute_returns_row_dicts(self, client, cursor, conn):
        cursor.description = [("num",)]
        cursor.fetchall.return_value = [{"num": 1}]

        assert client.execute("SELECT 1 AS num") == [{"num": 1}]
        conn.commit.assert_called()

    def test_execute_converts_uuid_params(self, client, cursor):
        cursor.description = None
        service_id = uuid4()

        client.execute("SELECT * FROM services WHERE id = %s", (service_id,))

        assert cursor.execute.call_args == call(
            "SELECT * FROM services WHERE id = %s", (str(service_id),)
        )

    def test_execute_single_no_rows_returns_none(self, client, cursor):
        cursor.description = [("id",)]
        cursor.fetchall.return_value = []

        assert client.execute_single("SELECT id FROM services WHERE false") is None

    def test_execute_scalar(self, client, cursor):
        cursor.fetchone.return_value = (42,)

        assert client.execute_scalar("SELECT 42") == 42

    def test_execute_scalar_no_rows(self, client, cursor):
        cursor.fetchone.return_value = None

        assert client.execute_scalar("SELECT 1 WHERE false") is None


class TestTransaction:

    def test_commits_on_clean_exit(self, client, conn, cursor):
        cursor.description = None

        with client.transaction() as tx:
            assert isinstance(tx, Transaction)
            tx.execute("UPDATE appointments SET status = 'canceled'")

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    def test_rolls_back_and_reraises(self, client, conn, pool):
        with pytest.raises(ValueError):
            with client.transaction():
                raise ValueError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    def test_transaction_queries_do_not_commit_individually(self, client, conn, cursor):
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [{"id": UUID(int=1)}]

        with client.transaction() as tx:
            assert tx.execute_single("SELECT id FROM barbers WHERE id = %s FOR UPDATE", (UUID(int=1),))
            assert conn.commit.call_count == 0

        assert conn.commit.call_count == 1
