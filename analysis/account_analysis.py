import pandas as pd
import numpy as np
from datetime import datetime, timezone
from dotenv import load_dotenv
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from data_pipeline.db import get_engine

load_dotenv()

SUSPENDED = 100

# Meta ad account status codes
STATUS_TEXT = {
    1:   "ACTIVE",
    2:   "PENDING_REVIEW",
    3:   "PENDING_ID_VERIFICATION",
    7:   "AD_PAUSED",
    9:   "IN_GRACE_PERIOD",
    100: "SUSPENDED",
}

UNDER_PACING_PCT = 70
OVER_PACING_PCT  = 110


# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------

def load_snapshots(engine=None):
    """Load every simulated snapshot with its vendor name."""
    engine = engine if engine is not None else get_engine()
    query = """
        SELECT m.account_id, a.vendor_name, m.snapshot_time,
               m.daily_spend_limit, m.spend_today, m.daily_limit_display,
               m.spend_progress_percent, m.cpc, m.outbound_clicks,
               m.active_ads_count, m.total_ads_count, m.account_balance,
               m.account_status, m.cap_source
        FROM mock_account_metrics m
        JOIN mock_ad_accounts a ON m.account_id = a.account_id
        ORDER BY m.snapshot_time;
    """
    df = pd.read_sql(query, engine)
    df["snapshot_time"] = pd.to_datetime(df["snapshot_time"], utc=True)
    df["spend_progress_percent"] = pd.to_numeric(df["spend_progress_percent"], errors="coerce")
    return df


# ---------------------------------------------------------------------------
# Latest state and filters
# ---------------------------------------------------------------------------

def latest_per_account(df):
    """One row per account: its newest snapshot. Newest accounts first."""
    if df.empty:
        return df.copy()
    return (
        df.sort_values("snapshot_time")
        .groupby("account_id")
        .tail(1)
        .sort_values("snapshot_time", ascending=False)
        .reset_index(drop=True)
    )


def filter_accounts(df, status="all", search=""):
    """
    status: "all", "active" or "suspended".
    search: case-insensitive substring of account_id or vendor_name.
    """
    filtered = df
    if status == "active":
        filtered = filtered[filtered["account_status"] != SUSPENDED]
    elif status == "suspended":
        filtered = filtered[filtered["account_status"] == SUSPENDED]
    elif status != "all":
        raise ValueError(f"Unknown status filter: {status!r}")

    if search:
        term = search.lower()
        mask = (
            filtered["account_id"].str.lower().str.contains(term, regex=False)
            | filtered["vendor_name"].str.lower().str.contains(term, regex=False)
        )
        filtered = filtered[mask]
    return filtered


def get_fleet_summary(df):
    """Counts and spend across the latest snapshot of each account."""
    suspended = int((df["account_status"] == SUSPENDED).sum())
    return {
        "total":       len(df),
        "active":      len(df) - suspended,
        "suspended":   suspended,
        "total_spend": round(float(df["spend_today"].fillna(0).sum()), 2),
    }


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

def spend_band(percent):
    """Pacing band for a spend-progress percentage."""
    if percent is None or pd.isna(percent):
        return "unknown"
    percent = float(percent)
    if percent < UNDER_PACING_PCT:
        return "under"
    if percent > OVER_PACING_PCT:
        return "over"
    return "on_track"


def add_spend_bands(df):
    df = df.copy()
    pct = pd.to_numeric(df["spend_progress_percent"], errors="coerce")
    bands = np.select(
        [pct < UNDER_PACING_PCT, pct > OVER_PACING_PCT, pct.notna()],
        ["under", "over", "on_track"],
        default="unknown",
    )
    df["spend_band"] = bands
    return df


def status_text(code):
    return STATUS_TEXT.get(code, "UNKNOWN")


def format_time_ago(timestamp, now=None):
    now = now or datetime.now(timezone.utc)
    past = pd.Timestamp(timestamp)
    if past.tzinfo is None:
        past = past.tz_localize("UTC")
    minutes = int((pd.Timestamp(now) - past).total_seconds() // 60)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days > 1 else ''} ago"


# ---------------------------------------------------------------------------
# Main (CLI usage)
# ---------------------------------------------------------------------------

def run_account_analysis():
    print("Loading account snapshots...")
    latest = add_spend_bands(latest_per_account(load_snapshots()))

    print("\n── Fleet Summary ────────────────────────")
    for key, value in get_fleet_summary(latest).items():
        print(f"  {key:<15} {value}")

    print("\n── Latest Snapshots ─────────────────────")
    latest["status"] = latest["account_status"].map(status_text)
    print(latest[["account_id", "vendor_name", "status", "spend_today",
                  "daily_limit_display", "spend_progress_percent", "spend_band"]].to_string(index=False))


if __name__ == "__main__":
    run_account_analysis()
