"""
Tests for simulated_api/main.py

The store and RNG dependencies are overridden: every test talks to its own
SQLite file and a seeded random.Random.
"""
import random
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from simulated_api.main import app, get_store, get_rng
from data_pipeline.db import init_db, mock_account_metrics
from data_pipeline.seed import seed_accounts, MOCK_ACCOUNTS
from data_pipeline.store import AccountStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_rng] = lambda: random.Random(7)
    return TestClient(app)


@pytest.fixture
def store(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'api.db'}")
    init_db(engine)
    return AccountStore(engine)


@pytest.fixture
def broken_store(tmp_path):
    # No tables at all: every query fails
    return AccountStore(create_engine(f"sqlite:///{tmp_path / 'empty.db'}"))


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# POST /simulate-fb-data
# ---------------------------------------------------------------------------

class TestSimulateEndpoint:
    def test_simulates_every_seeded_account(self, store):
        seed_accounts(store)
        response = _make_client(store).post("/simulate-fb-data")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["accounts_processed"] == len(MOCK_ACCOUNTS)
        assert body["data"]["metrics_generated"] == len(MOCK_ACCOUNTS)
        assert 0 <= body["data"]["suspension_rate"] <= 1

    def test_updates_run_summary(self, store):
        seed_accounts(store)
        _make_client(store).post("/simulate-fb-data")
        config = store.get_simulation_config()
        assert config["accounts_count"] == len(MOCK_ACCOUNTS)
        assert config["last_update"] is not None

    def test_no_accounts_is_success(self, store):
        body = _make_client(store).post("/simulate-fb-data").json()
        assert body["success"] is True
        assert body["data"]["accounts_processed"] == 0

    def test_disabled_mode(self, store):
        seed_accounts(store)
        store.set_simulation_mode(False)
        response = _make_client(store).post("/simulate-fb-data")
        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "Simulation mode is disabled",
            "error": {"kind": "SimulationDisabled", "message": "Simulation mode is disabled"},
        }

    def test_read_failure_is_500(self, broken_store):
        response = _make_client(broken_store).post("/simulate-fb-data")
        assert response.status_code == 500
        assert response.json()["error"]["kind"] == "UpstreamReadFailure"

    def test_get_not_allowed(self, store):
        assert _make_client(store).get("/simulate-fb-data").status_code == 405


# ---------------------------------------------------------------------------
# GET /accounts
# ---------------------------------------------------------------------------

class TestAccountsEndpoint:
    def test_empty(self, store):
        body = _make_client(store).get("/accounts").json()
        assert body["accounts"] == []
        assert body["message"] == "No account data available yet"
        assert body["simulation_mode"] is True

    def test_latest_per_account_after_two_runs(self, store):
        seed_accounts(store)
        client = _make_client(store)
        client.post("/simulate-fb-data")
        client.post("/simulate-fb-data")
        body = client.get("/accounts").json()
        assert body["success"] is True
        assert body["total_accounts"] == len(MOCK_ACCOUNTS)
        ids = [a["account_id"] for a in body["accounts"]]
        assert len(ids) == len(set(ids))
        assert all(a["vendor_name"] for a in body["accounts"])
        assert body["last_update"] == body["accounts"][0]["snapshot_time"]

    def test_read_failure_is_500(self, broken_store):
        response = _make_client(broken_store).get("/accounts")
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch account metrics"


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    def test_healthy_after_run(self, store):
        seed_accounts(store)
        client = _make_client(store)
        client.post("/simulate-fb-data")
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["accounts_monitored"] == len(MOCK_ACCOUNTS)
        assert body["database"]["last_sync"] is not None
        assert 0 <= body["database"]["success_rate"] <= 100
        assert body["checks"]["database_connection"] is True

    def test_unhealthy_when_database_fails(self, broken_store):
        response = _make_client(broken_store).get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_unhealthy_when_metrics_table_fails(self, store):
        mock_account_metrics.drop(store.engine)
        response = _make_client(store).get("/health")
        assert response.status_code == 503
        body = response.json()
        assert body["database"]["status"] == "error"
        assert body["checks"]["database_connection"] is False
