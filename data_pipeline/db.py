import os

from dotenv import load_dotenv
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, MetaData, String,
    Table, create_engine, insert, select,
)

load_dotenv()

metadata = MetaData()

mock_ad_accounts = Table(
    "mock_ad_accounts", metadata,
    Column("account_id", String, primary_key=True),
    Column("vendor_name", String, nullable=False),
    Column("initial_cap_cents", Integer, nullable=False),
    Column("cap_growth_rate", String(16), nullable=False),
    Column("base_cpc", Float, nullable=False),
    Column("suspension_probability", Float, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# Append-only, one row per account per simulation run
mock_account_metrics = Table(
    "mock_account_metrics", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", String, ForeignKey("mock_ad_accounts.account_id"), nullable=False),
    Column("snapshot_time", DateTime(timezone=True), nullable=False, index=True),
    Column("daily_spend_limit", Integer),
    Column("spend_cap", Integer),
    Column("amount_spent", Integer),
    Column("spend_today", Float),
    Column("daily_limit_display", Float),
    Column("spend_progress_percent", String),
    Column("cpc", Float),
    Column("outbound_clicks", Integer),
    Column("active_ads_count", Integer),
    Column("total_ads_count", Integer),
    Column("account_balance", Float),
    Column("account_status", Integer, nullable=False),
    Column("cap_source", String),
)

# Single row (id=1) holding the mode switch and the last run summary
simulation_config = Table(
    "simulation_config", metadata,
    Column("id", Integer, primary_key=True),
    Column("simulation_mode", Boolean, nullable=False, default=True),
    Column("update_interval", Integer, nullable=False, default=5),
    Column("last_update", DateTime(timezone=True)),
    Column("accounts_count", Integer, nullable=False, default=0),
    Column("suspension_rate", Float, nullable=False, default=0.0),
)

CONFIG_ID = 1


def database_url():
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return f"postgresql+psycopg2://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}@{os.getenv('DB_HOST')}/{os.getenv('DB_NAME')}"


def get_engine(url=None):
    return create_engine(url or database_url())


def init_db(engine):
    """Create missing tables and the default simulation_config row."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        exists = conn.execute(
            select(simulation_config.c.id).where(simulation_config.c.id == CONFIG_ID)
        ).first()
        if exists is None:
            conn.execute(insert(simulation_config).values(id=CONFIG_ID))
