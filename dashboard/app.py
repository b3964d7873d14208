import streamlit as st
import pandas as pd
import plotly.express as px
from dotenv import load_dotenv
import os
import sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from analysis.account_analysis import (
    load_snapshots, latest_per_account, filter_accounts, get_fleet_summary,
    add_spend_bands, status_text, format_time_ago, SUSPENDED,
)
from analysis.alerts import generate_alerts
from dashboard.auth import StaticCredentialVerifier, InvalidCredentials, has_permission, is_admin
from data_pipeline.db import get_engine, init_db
from data_pipeline.simulation import run_simulation
from data_pipeline.store import AccountStore, StoreError

load_dotenv()

st.set_page_config(page_title="Ad Account Monitor", layout="wide")


@st.cache_resource
def get_store():
    engine = get_engine()
    init_db(engine)
    return AccountStore(engine)


@st.cache_resource
def get_verifier():
    return StaticCredentialVerifier.from_env()


# ── LOGIN GATE ────────────────────────────────────────────────────────────────
def login_form(verifier):
    st.title("🔐 Ad Account Monitor")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")
    if submitted:
        try:
            st.session_state["user"] = verifier.verify(username, password)
            st.rerun()
        except InvalidCredentials as e:
            st.error(str(e))


user = st.session_state.get("user")
if not has_permission(user, "view"):
    login_form(get_verifier())
    st.stop()

store = get_store()

# ── SIDEBAR ───────────────────────────────────────────────────────────────────
with st.sidebar:
    st.header(f"👤 {user['name']}")
    st.caption(f"Role: {user['role']}")
    if st.button("Sign out"):
        st.session_state.pop("user", None)
        st.rerun()

    st.markdown("---")
    st.header("Filters")
    status_filter = st.radio("Status", ["all", "active", "suspended"], horizontal=True)
    search = st.text_input("Search", placeholder="Account ID or vendor")

    if is_admin(user):
        st.markdown("---")
        st.header("Simulation")
        try:
            config = store.get_simulation_config() or {}
            enabled = st.toggle("Simulation mode", value=bool(config.get("simulation_mode", True)))
            if enabled != bool(config.get("simulation_mode", True)):
                store.set_simulation_mode(enabled)
        except StoreError as e:
            st.error(f"Error reading simulation settings: {e}")
        if st.button("▶️ Run simulation now"):
            result = run_simulation(store)
            if result["success"]:
                st.success(result["message"])
                st.cache_data.clear()
            else:
                st.error(result["message"])


# ── LOAD DATA ─────────────────────────────────────────────────────────────────
@st.cache_data(ttl=60)
def load_data():
    return load_snapshots(store.engine)


try:
    history = load_data()
except Exception as e:
    st.error(f"Error loading accounts: {e}")
    st.stop()

st.title("📡 Ad Account Monitor")

if history.empty:
    st.info("No account data available yet. Run a simulation to populate the dashboard.")
    st.stop()

latest = add_spend_bands(latest_per_account(history))

# ── FLEET CARDS ───────────────────────────────────────────────────────────────
summary = get_fleet_summary(latest)
c1, c2, c3, c4 = st.columns(4)
c1.metric("Accounts",     summary["total"])
c2.metric("Active",       summary["active"])
c3.metric("Suspended",    summary["suspended"])
c4.metric("Spend Today",  f"${summary['total_spend']:,.2f}")
st.caption(f"Last update: {format_time_ago(latest['snapshot_time'].max())}")

# ── ACCOUNT GRID ──────────────────────────────────────────────────────────────
st.subheader("🗂️ Accounts")
visible = filter_accounts(latest, status=status_filter, search=search)
st.caption(f"Showing {len(visible)} of {len(latest)} account(s)")

BAND_COLOURS = {"under": "🟡", "on_track": "🟢", "over": "🔴", "unknown": "⚪"}

cols = st.columns(3)
for i, (_, acc) in enumerate(visible.iterrows()):
    with cols[i % 3].container(border=True):
        suspended = acc["account_status"] == SUSPENDED
        st.markdown(f"**`{acc['account_id']}`** · {acc['vendor_name']}")
        st.markdown("🚨 **SUSPENDED**" if suspended else f"● {status_text(acc['account_status'])}")

        if suspended:
            st.error(
                f"Final spend: ${acc['spend_today']:,.2f} of ${acc['daily_limit_display']:,.2f} daily cap · "
                f"Clicks: {int(acc['outbound_clicks']):,}")
        elif pd.isna(acc["spend_progress_percent"]):
            st.caption("Cap unavailable")
        else:
            pct = float(acc["spend_progress_percent"])
            st.markdown(
                f"{BAND_COLOURS[acc['spend_band']]} Daily spend: ${acc['spend_today']:,.2f} / "
                f"${acc['daily_limit_display']:,.2f} ({pct:.1f}%)")
            st.progress(min(pct, 100) / 100)

        m1, m2 = st.columns(2)
        m1.metric("Active Ads", f"{int(acc['active_ads_count'])} / {int(acc['total_ads_count'])}")
        m2.metric("Avg CPC",    f"${acc['cpc']:.2f}")
        m3, m4 = st.columns(2)
        m3.metric("Clicks",     f"{int(acc['outbound_clicks']):,}")
        m4.metric("Balance",    f"${acc['account_balance']:,.2f}")
        st.caption(f"Updated: {format_time_ago(acc['snapshot_time'])}")

# ── SPEND HISTORY ─────────────────────────────────────────────────────────────
st.subheader("📈 Spend History")
selected = st.multiselect("Accounts", sorted(history["account_id"].unique().tolist()),
    default=visible["account_id"].tolist()[:5])
if selected:
    fig = px.line(history[history["account_id"].isin(selected)],
        x="snapshot_time", y="spend_today", color="account_id",
        labels={"snapshot_time": "Time", "spend_today": "Spend today ($)"})
    fig.update_layout(hovermode="x unified", plot_bgcolor=None,
        legend=dict(orientation="h", y=1.1))
    st.plotly_chart(fig, use_container_width=True)

# ── ALERTS ────────────────────────────────────────────────────────────────────
st.subheader("🎯 Pacing Alerts")
alerts = generate_alerts(visible)
if not alerts:
    st.success("✅ No accounts to review.")
else:
    alert_df = pd.DataFrame(alerts)
    a1, a2, a3 = st.columns(3)
    a1.metric("⚠️ Warnings", int((alert_df["Type"] == "warning").sum()))
    a2.metric("💡 Info",     int((alert_df["Type"] == "info").sum()))
    a3.metric("✅ On track", int((alert_df["Type"] == "success").sum()))
    st.dataframe(alert_df.drop(columns=["Type"]), use_container_width=True, hide_index=True)

    if has_permission(user, "export"):
        st.download_button("⬇️ Export latest snapshots (CSV)",
            latest.to_csv(index=False).encode("utf-8"),
            file_name="account_snapshots.csv", mime="text/csv")
