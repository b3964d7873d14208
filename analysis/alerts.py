import pandas as pd
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from analysis.account_analysis import (
    SUSPENDED, OVER_PACING_PCT, UNDER_PACING_PCT,
    latest_per_account, load_snapshots,
)

# Before noon most of the day's budget is still unspent, so low pacing is expected
UNDERPACING_CHECK_FROM_HOUR = 12


def _as_percent(value):
    if value is None or pd.isna(value):
        return float("nan")
    return float(value)


def _pct_label(percent):
    return "—" if pd.isna(percent) else f"{percent:.1f}%"


def _local_hour(snapshot_time, tz=None):
    ts = pd.Timestamp(snapshot_time)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    if tz is None:
        # Same zone the diurnal curve read when the snapshot was generated
        return ts.to_pydatetime().astimezone().hour
    return ts.tz_convert(tz).hour


def generate_alerts(latest, tz=None):
    """
    One pass over the latest snapshot of each account.

    tz is the zone used for the noon cutoff on underpacing; None means the
    server's local zone, which is what run_simulation uses.

    Returns a list of dicts sorted warnings first, then info, then success,
    ready to be passed directly to pd.DataFrame() for display.
    """
    alerts = []

    for _, row in latest.iterrows():
        percent = _as_percent(row["spend_progress_percent"])
        hour = _local_hour(row["snapshot_time"], tz)
        base = {
            "Account": row["account_id"],
            "Vendor":  row["vendor_name"],
            "Spend":   f"${row['spend_today']:,.2f} / ${row['daily_limit_display']:,.2f}",
            "Pacing":  _pct_label(percent),
        }

        # --- Suspended ---
        if row["account_status"] == SUSPENDED:
            alerts.append({**base,
                "Alert":  "🚨 Suspended",
                "Type":   "warning",
                "Action": "Check the account quality page and appeal or move spend to a backup account.",
            })
            continue

        if pd.isna(percent):
            alerts.append({**base,
                "Alert":  "❔ Cap unavailable",
                "Type":   "info",
                "Action": "Spend cap is zero; confirm the account limit with the vendor.",
            })
            continue

        # --- Overspend ---
        if percent > OVER_PACING_PCT:
            alerts.append({**base,
                "Alert":  "🔥 Overspending",
                "Type":   "warning",
                "Action": "Spend is past the daily cap; lower budgets or pause the top ad sets.",
            })

        # --- Underpacing (only meaningful in the afternoon) ---
        elif percent < UNDER_PACING_PCT and hour >= UNDERPACING_CHECK_FROM_HOUR:
            alerts.append({**base,
                "Alert":  "🐢 Underpacing",
                "Type":   "info",
                "Action": "Raise bids or add creatives to use the available cap.",
            })

        elif UNDER_PACING_PCT <= percent <= OVER_PACING_PCT:
            alerts.append({**base,
                "Alert":  "✅ On track",
                "Type":   "success",
                "Action": "No action needed.",
            })

    order = {"warning": 0, "info": 1, "success": 2}
    alerts.sort(key=lambda a: order.get(a["Type"], 9))

    return alerts


def get_alerts():
    return generate_alerts(latest_per_account(load_snapshots()))


if __name__ == "__main__":
    for a in get_alerts():
        print(f"{a['Alert']}  {a['Account']} ({a['Vendor']})  {a['Spend']}  {a['Pacing']}")
        print(f"  👉 {a['Action']}")
