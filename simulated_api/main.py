import logging
import os
import random
import sys
import time
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from data_pipeline.db import get_engine, init_db
from data_pipeline.simulation import run_simulation
from data_pipeline.store import AccountStore, StoreError, UpstreamReadFailure

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Simulated Ad Accounts API")

DEGRADED_AFTER_MS = 5000

# Failure kinds that mean the store itself is broken
SERVER_ERROR_KINDS = {"UpstreamReadFailure", "UpstreamWriteFailure", "InvalidAccountDefinition"}


@lru_cache
def get_store():
    engine = get_engine()
    init_db(engine)
    return AccountStore(engine)


def get_rng():
    return random


@app.post("/simulate-fb-data")
def simulate_fb_data(store=Depends(get_store), rng=Depends(get_rng)):
    result = run_simulation(store, rng=rng)
    if not result["success"] and result["error"]["kind"] in SERVER_ERROR_KINDS:
        return JSONResponse(status_code=500, content=result)
    return result


@app.get("/accounts")
def get_accounts(store=Depends(get_store)):
    try:
        config = store.get_simulation_config()
        accounts = store.latest_snapshots()
    except UpstreamReadFailure as e:
        logger.error(f"Failed to fetch metrics: {e}")
        return JSONResponse(status_code=500, content={
            "error": "Failed to fetch account metrics",
            "details": str(e),
        })

    is_simulation = config is None or config["simulation_mode"] is not False

    if not accounts:
        return {
            "success": True,
            "accounts": [],
            "message": "No account data available yet",
            "simulation_mode": is_simulation,
        }

    for a in accounts:
        a["snapshot_time"] = a["snapshot_time"].isoformat()

    return {
        "success": True,
        "accounts": accounts,
        "simulation_mode": is_simulation,
        "total_accounts": len(accounts),
        "last_update": accounts[0]["snapshot_time"],
    }


@app.get("/health")
def health(store=Depends(get_store)):
    start = time.monotonic()

    db_status = "healthy"
    last_sync = None
    accounts_monitored = 0
    success_rate = 1.0

    try:
        config = store.get_simulation_config()
        if config is not None:
            last_sync = config["last_update"].isoformat() if config["last_update"] else None
            accounts_monitored = config["accounts_count"] or 0
            success_rate = 1 - (config["suspension_rate"] or 0)
        # Data flow check
        store.latest_snapshots()
    except StoreError as e:
        db_status = "error"
        logger.error(f"Database health check failed: {e}")

    response_time = round((time.monotonic() - start) * 1000)

    status = "healthy"
    if db_status == "error":
        status = "unhealthy"
    elif response_time > DEGRADED_AFTER_MS:
        status = "degraded"

    body = {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "response_time_ms": response_time,
        "database": {
            "status": db_status,
            "last_sync": last_sync,
            "accounts_monitored": accounts_monitored,
            "success_rate": round(success_rate * 100),
        },
        "checks": {
            "database_connection": db_status == "healthy",
            "response_time": response_time < DEGRADED_AFTER_MS,
        },
    }
    return JSONResponse(status_code=503 if status == "unhealthy" else 200, content=body)
