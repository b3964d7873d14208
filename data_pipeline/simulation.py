"""
One simulation run: read the mock accounts, synthesize a snapshot per
account at a single shared timestamp, append the batch, then record the
run summary in simulation_config.

Failures come back as a result dict, never as an exception:

    {"success": False, "message": ..., "error": {"kind": ..., "message": ...}}
"""
import logging
import random
from datetime import datetime

from data_pipeline.store import StoreError, UpstreamReadFailure, UpstreamWriteFailure
from simulated_api.metrics import STATUS_SUSPENDED, generate_snapshot

logger = logging.getLogger(__name__)


def _failure(kind, message):
    return {"success": False, "message": message, "error": {"kind": kind, "message": message}}


def _summary(accounts_count, snapshots, now):
    suspended = sum(1 for s in snapshots if s["account_status"] == STATUS_SUSPENDED)
    return {
        "accounts_processed": accounts_count,
        "metrics_generated": len(snapshots),
        "suspension_rate": suspended / accounts_count if accounts_count else 0.0,
        "timestamp": now.isoformat(),
    }


def run_simulation(store, rng=random, now=None, check_mode=True):
    now = now or datetime.now().astimezone()
    logger.info("Starting ad account data simulation...")

    try:
        config = store.get_simulation_config()
        # A missing config row means no run summary can be recorded either
        if config is None or (check_mode and not config["simulation_mode"]):
            logger.info("Simulation mode is disabled, skipping run.")
            return _failure("SimulationDisabled", "Simulation mode is disabled")
        accounts = store.list_account_definitions()
    except UpstreamReadFailure as e:
        logger.error(f"Error fetching mock accounts: {e}")
        return _failure("UpstreamReadFailure", str(e))

    if not accounts:
        logger.info("No mock accounts found to simulate.")
        return {
            "success": True,
            "message": "No mock accounts found to simulate",
            "data": _summary(0, [], now),
        }

    try:
        snapshots = [generate_snapshot(account, now, rng) for account in accounts]
    except (KeyError, ValueError) as e:
        logger.error(f"Invalid mock account definition: {e}")
        return _failure("InvalidAccountDefinition", str(e))

    summary = _summary(len(accounts), snapshots, now)

    try:
        store.append_snapshots(snapshots)
    except UpstreamWriteFailure as e:
        logger.error(f"Error inserting simulated metrics: {e}")
        return _failure("UpstreamWriteFailure", str(e))

    try:
        store.update_run_summary(now, len(accounts), summary["suspension_rate"])
    except StoreError as e:
        # The snapshot batch is already committed at this point
        logger.error(
            f"Stored {len(snapshots)} snapshots but failed to update the run summary: {e}"
        )
        return _failure(type(e).__name__, str(e))

    logger.info(f"Successfully simulated data for {len(accounts)} accounts")
    return {
        "success": True,
        "message": f"Simulated data for {len(accounts)} accounts",
        "data": summary,
    }
