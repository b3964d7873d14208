"""
Seed the mock ad accounts used in simulation mode.

Usage:
    python data_pipeline/seed.py

Creates the tables if needed and upserts MOCK_ACCOUNTS. Safe to run twice:
existing accounts keep their created_at, so their cap growth is not reset.
"""
import logging
import os
import sys
from datetime import datetime, timedelta, timezone

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from data_pipeline.db import get_engine, init_db
from data_pipeline.store import AccountStore

logger = logging.getLogger(__name__)

# Each account has a personality: cap size, growth category, CPC and risk
MOCK_ACCOUNTS = [
    {"account_id": "act_1001", "vendor_name": "Northwind Media",   "initial_cap_cents": 25000,  "cap_growth_rate": "fast",      "base_cpc": 0.30, "suspension_probability": 0.02, "age_days": 2},   # young, scaling
    {"account_id": "act_1002", "vendor_name": "Bluebird Agency",   "initial_cap_cents": 50000,  "cap_growth_rate": "normal",    "base_cpc": 0.45, "suspension_probability": 0.03, "age_days": 14},  # steady
    {"account_id": "act_1003", "vendor_name": "Summit Performance", "initial_cap_cents": 100000, "cap_growth_rate": "slow",      "base_cpc": 0.60, "suspension_probability": 0.01, "age_days": 45},  # mature
    {"account_id": "act_1004", "vendor_name": "Harbor Digital",    "initial_cap_cents": 75000,  "cap_growth_rate": "declining", "base_cpc": 0.55, "suspension_probability": 0.05, "age_days": 30},  # shrinking
    {"account_id": "act_1005", "vendor_name": "Redline Growth",    "initial_cap_cents": 20000,  "cap_growth_rate": "fast",      "base_cpc": 0.25, "suspension_probability": 0.25, "age_days": 5},   # aggressive, high risk
    {"account_id": "act_1006", "vendor_name": "Evergreen Leads",   "initial_cap_cents": 40000,  "cap_growth_rate": "normal",    "base_cpc": 0.35, "suspension_probability": 0.04, "age_days": 21},
]


def build_mock_accounts(now=None):
    """Turn MOCK_ACCOUNTS into account definitions anchored `age_days` before now."""
    now = now or datetime.now(timezone.utc)
    accounts = []
    for a in MOCK_ACCOUNTS:
        account = {k: v for k, v in a.items() if k != "age_days"}
        account["created_at"] = now - timedelta(days=a["age_days"])
        accounts.append(account)
    return accounts


def seed_accounts(store, now=None):
    accounts = build_mock_accounts(now)
    store.upsert_account_definitions(accounts)
    logger.info(f"Seeded {len(accounts)} mock accounts.")
    return len(accounts)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    engine = get_engine()
    init_db(engine)
    seed_accounts(AccountStore(engine))
