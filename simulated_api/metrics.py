"""
Synthetic ad-account metrics.

Every generator takes an optional `rng`: anything exposing `random()` and
`uniform(a, b)`. The `random` module is used by default; tests pass a seeded
`random.Random` to get exact outputs.
"""
import math
import random
from datetime import datetime, timezone

STATUS_ACTIVE = 1
STATUS_SUSPENDED = 100

CAP_SOURCE = "SIMULATION"

# Category-level volatility applied to today's spend pacing
SPEND_MULTIPLIERS = {
    "fast": 1.15,
    "normal": 1.05,
    "slow": 0.95,
    "declining": 0.85,
}

# Daily compounding of the platform-assigned spend cap
CAP_GROWTH_RATES = {
    "fast": 1.02,       # 2% daily growth
    "normal": 1.01,     # 1% daily growth
    "slow": 1.005,      # 0.5% daily growth
    "declining": 0.99,  # 1% daily decline
}

# (segment start minute, fraction at start, fraction at end), each segment 6 hours long
DIURNAL_SEGMENTS = [
    (0,    0.00, 0.05),  # midnight to 6am: slow start
    (360,  0.05, 0.25),  # 6am to noon: morning ramp
    (720,  0.25, 0.75),  # noon to 6pm: afternoon peak
    (1080, 0.75, 1.00),  # 6pm to midnight: evening decline
]
SEGMENT_MINUTES = 360
MINUTES_PER_DAY = 1440


def _round_half_up(value, digits=0):
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _lookup(table, growth_rate):
    try:
        return table[growth_rate]
    except KeyError:
        raise ValueError(f"Unknown cap_growth_rate: {growth_rate!r}") from None


def _as_utc(value):
    """Accept datetimes or ISO strings; naive values are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Diurnal spend curve
# ---------------------------------------------------------------------------

def minutes_since_midnight(now):
    return now.hour * 60 + now.minute


def diurnal_fraction(minutes):
    """Cumulative share of the daily budget spent by `minutes` past midnight."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes must be in [0, {MINUTES_PER_DAY}), got {minutes}")
    for start, low, high in reversed(DIURNAL_SEGMENTS):
        if minutes >= start:
            return low + (high - low) * ((minutes - start) / SEGMENT_MINUTES)


def spend_progress(account, now, rng=random):
    """
    Amount spent so far today, in whole major currency units.

    The result is intentionally not clamped to the cap: the jitter and the
    category multiplier can push an account past 100% like real overspend.
    """
    fraction = diurnal_fraction(minutes_since_midnight(now))
    multiplier = _lookup(SPEND_MULTIPLIERS, account["cap_growth_rate"])
    jitter = rng.uniform(0.95, 1.05)

    base_spend = account["initial_cap_cents"] / 100 * fraction * multiplier * jitter
    return int(_round_half_up(base_spend))


# ---------------------------------------------------------------------------
# Cap compounding
# ---------------------------------------------------------------------------

def day_number(created_at, now):
    """Day 1 is the creation day; every full 24h elapsed adds one."""
    elapsed = _as_utc(now) - _as_utc(created_at)
    return math.floor(elapsed.total_seconds() / 86400) + 1


def daily_cap(account, day_number):
    rate = _lookup(CAP_GROWTH_RATES, account["cap_growth_rate"])
    return int(_round_half_up(account["initial_cap_cents"] * rate ** (day_number - 1)))


# ---------------------------------------------------------------------------
# Status, performance, ads and balance
# ---------------------------------------------------------------------------

def sample_status(account, rng=random):
    if rng.random() < account["suspension_probability"]:
        return STATUS_SUSPENDED
    return STATUS_ACTIVE


def performance_metrics(account, spend, rng=random):
    cpc = _round_half_up(account["base_cpc"] * rng.uniform(0.8, 1.2), 2)
    # A cpc that rounds to zero would divide by zero
    clicks = int(_round_half_up(spend / cpc)) if spend > 0 and cpc > 0 else 0
    return {"cpc": cpc, "outbound_clicks": clicks}


def ad_counts(is_suspended, rng=random):
    if is_suspended:
        return {"active": 0, "total": math.floor(5 + rng.uniform(0, 15))}

    active = math.floor(3 + rng.uniform(0, 20))
    total = active + math.floor(rng.uniform(0, 10))
    return {"active": active, "total": total}


def account_balance(rng=random):
    return int(_round_half_up(100 + rng.uniform(0, 9900)))


def spend_progress_percent(spend_today, daily_spend_limit):
    if daily_spend_limit == 0:
        return None
    return f"{spend_today / (daily_spend_limit / 100) * 100:.2f}"


# ---------------------------------------------------------------------------
# Snapshot assembly
# ---------------------------------------------------------------------------

def generate_snapshot(account, now, rng=random):
    """Build one mock_account_metrics row for `account` at `now`."""
    status = sample_status(account, rng)
    is_suspended = status == STATUS_SUSPENDED

    cap_cents = daily_cap(account, day_number(account["created_at"], now))
    spend_today = spend_progress(account, now, rng)
    performance = performance_metrics(account, spend_today, rng)
    ads = ad_counts(is_suspended, rng)

    return {
        "account_id": account["account_id"],
        "snapshot_time": now,
        "daily_spend_limit": cap_cents,
        "spend_cap": cap_cents,
        "amount_spent": spend_today * 100,
        "spend_today": spend_today,
        "daily_limit_display": cap_cents / 100,
        "spend_progress_percent": spend_progress_percent(spend_today, cap_cents),
        "cpc": performance["cpc"],
        "outbound_clicks": performance["outbound_clicks"],
        "active_ads_count": ads["active"],
        "total_ads_count": ads["total"],
        "account_balance": account_balance(rng),
        "account_status": status,
        "cap_source": CAP_SOURCE,
    }
