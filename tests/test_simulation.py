"""
Tests for data_pipeline/simulation.py

Uses an in-memory fake store, no database connection required.
"""
import logging
import random
import pytest
from datetime import datetime, timedelta, timezone

import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from data_pipeline.simulation import run_simulation
from data_pipeline.store import UpstreamReadFailure, UpstreamWriteFailure


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


class _FakeStore:
    def __init__(self, accounts, simulation_mode=True,
                 fail_read=False, fail_append=False, fail_summary=False):
        self.accounts = accounts
        self.config = {"id": 1, "simulation_mode": simulation_mode}
        self.fail_read = fail_read
        self.fail_append = fail_append
        self.fail_summary = fail_summary
        self.appended = []
        self.summaries = []
        self.list_calls = 0

    def get_simulation_config(self):
        return self.config

    def list_account_definitions(self):
        self.list_calls += 1
        if self.fail_read:
            raise UpstreamReadFailure("Failed to fetch mock accounts: connection refused")
        return self.accounts

    def append_snapshots(self, snapshots):
        if self.fail_append:
            raise UpstreamWriteFailure("Failed to store simulated metrics: disk full")
        self.appended.append(list(snapshots))

    def update_run_summary(self, last_run_time, accounts_count, suspension_rate):
        if self.fail_summary:
            raise UpstreamWriteFailure("Failed to update simulation config: timeout")
        self.summaries.append((last_run_time, accounts_count, suspension_rate))


def _make_account(account_id, **overrides):
    account = {
        "account_id": account_id,
        "vendor_name": f"Vendor {account_id}",
        "initial_cap_cents": 25000,
        "cap_growth_rate": "normal",
        "base_cpc": 0.30,
        "suspension_probability": 0.0,
        "created_at": NOW - timedelta(days=3),
    }
    account.update(overrides)
    return account


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestSuccessfulRun:
    def test_one_snapshot_per_account(self):
        store = _FakeStore([_make_account("a"), _make_account("b"), _make_account("c")])
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["success"] is True
        assert result["data"]["accounts_processed"] == 3
        assert result["data"]["metrics_generated"] == 3
        assert len(store.appended) == 1
        assert [s["account_id"] for s in store.appended[0]] == ["a", "b", "c"]

    def test_batch_shares_one_timestamp(self):
        store = _FakeStore([_make_account("a"), _make_account("b")])
        run_simulation(store, rng=random.Random(1), now=NOW)
        assert {s["snapshot_time"] for s in store.appended[0]} == {NOW}

    def test_suspension_rate_reported(self):
        accounts = [
            _make_account("a", suspension_probability=1),
            _make_account("b", suspension_probability=1),
            _make_account("c", suspension_probability=0),
            _make_account("d", suspension_probability=0),
        ]
        store = _FakeStore(accounts)
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["data"]["suspension_rate"] == pytest.approx(0.5)
        assert store.summaries == [(NOW, 4, pytest.approx(0.5))]

    def test_timestamp_in_result(self):
        store = _FakeStore([_make_account("a")])
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["data"]["timestamp"] == NOW.isoformat()


class TestEmptyInput:
    def test_empty_set_is_a_noop_success(self):
        store = _FakeStore([])
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["success"] is True
        assert result["data"]["accounts_processed"] == 0
        assert result["data"]["suspension_rate"] == 0.0
        assert store.appended == []
        assert store.summaries == []


class TestFailures:
    def test_read_failure_writes_nothing(self):
        store = _FakeStore([_make_account("a")], fail_read=True)
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["success"] is False
        assert result["error"]["kind"] == "UpstreamReadFailure"
        assert "connection refused" in result["error"]["message"]
        assert store.appended == []
        assert store.summaries == []

    def test_write_failure_skips_summary(self):
        store = _FakeStore([_make_account("a")], fail_append=True)
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["error"]["kind"] == "UpstreamWriteFailure"
        assert store.summaries == []

    def test_summary_failure_is_reported_and_logged(self, caplog):
        store = _FakeStore([_make_account("a")], fail_summary=True)
        with caplog.at_level(logging.ERROR, logger="data_pipeline.simulation"):
            result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["success"] is False
        assert result["error"]["kind"] == "UpstreamWriteFailure"
        assert len(store.appended) == 1
        assert "failed to update the run summary" in caplog.text

    def test_invalid_account_definition(self):
        store = _FakeStore([_make_account("a", cap_growth_rate="rocket")])
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["error"]["kind"] == "InvalidAccountDefinition"
        assert store.appended == []


class TestSimulationMode:
    def test_disabled_mode_skips_run(self):
        store = _FakeStore([_make_account("a")], simulation_mode=False)
        result = run_simulation(store, rng=random.Random(1), now=NOW)
        assert result["success"] is False
        assert result["message"] == "Simulation mode is disabled"
        assert store.list_calls == 0

    def test_mode_check_can_be_bypassed(self):
        store = _FakeStore([_make_account("a")], simulation_mode=False)
        result = run_simulation(store, rng=random.Random(1), now=NOW, check_mode=False)
        assert result["success"] is True

    @pytest.mark.parametrize("check_mode", [True, False])
    def test_missing_config_row_writes_nothing(self, check_mode):
        store = _FakeStore([_make_account("a")])
        store.config = None
        result = run_simulation(store, rng=random.Random(1), now=NOW, check_mode=check_mode)
        assert result["success"] is False
        assert result["error"]["kind"] == "SimulationDisabled"
        assert store.appended == []
        assert store.summaries == []
