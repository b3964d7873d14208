"""
Account store: the only place that talks to the database.

Every public method runs inside its own `engine.begin()` block, so each call
commits or rolls back as a unit. SQLAlchemy errors are re-raised as
UpstreamReadFailure / UpstreamWriteFailure for the simulation to report.
"""
import logging

from sqlalchemy import DateTime, bindparam, func, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from data_pipeline.db import (
    CONFIG_ID, get_engine, mock_account_metrics, mock_ad_accounts, simulation_config,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for account store failures."""


class UpstreamReadFailure(StoreError):
    pass


class UpstreamWriteFailure(StoreError):
    pass


UPSERT_ACCOUNT = text("""
    INSERT INTO mock_ad_accounts (
        account_id, vendor_name, initial_cap_cents, cap_growth_rate,
        base_cpc, suspension_probability, created_at
    )
    VALUES (
        :account_id, :vendor_name, :initial_cap_cents, :cap_growth_rate,
        :base_cpc, :suspension_probability, :created_at
    )
    ON CONFLICT (account_id)
     DO UPDATE SET vendor_name = EXCLUDED.vendor_name,
     initial_cap_cents = EXCLUDED.initial_cap_cents,
     cap_growth_rate = EXCLUDED.cap_growth_rate,
     base_cpc = EXCLUDED.base_cpc,
     suspension_probability = EXCLUDED.suspension_probability
""").bindparams(bindparam("created_at", type_=DateTime(timezone=True)))


class AccountStore:
    def __init__(self, engine=None):
        self.engine = engine if engine is not None else get_engine()

    # --- READ ---
    def get_simulation_config(self):
        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    select(simulation_config).where(simulation_config.c.id == CONFIG_ID)
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise UpstreamReadFailure(f"Failed to read simulation config: {exc}") from exc
        return dict(row) if row is not None else None

    def list_account_definitions(self):
        """All simulated account definitions, ordered by account_id."""
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(
                    select(mock_ad_accounts).order_by(mock_ad_accounts.c.account_id)
                ).mappings().all()
        except SQLAlchemyError as exc:
            raise UpstreamReadFailure(f"Failed to fetch mock accounts: {exc}") from exc
        return [dict(r) for r in rows]

    def latest_snapshots(self):
        """Newest snapshot per account, with vendor_name, newest first."""
        latest = (
            select(
                mock_account_metrics.c.account_id,
                func.max(mock_account_metrics.c.snapshot_time).label("snapshot_time"),
            )
            .group_by(mock_account_metrics.c.account_id)
            .subquery()
        )
        query = (
            select(mock_account_metrics, mock_ad_accounts.c.vendor_name)
            .join(latest, (mock_account_metrics.c.account_id == latest.c.account_id)
                  & (mock_account_metrics.c.snapshot_time == latest.c.snapshot_time))
            .join(mock_ad_accounts,
                  mock_ad_accounts.c.account_id == mock_account_metrics.c.account_id)
            .order_by(mock_account_metrics.c.snapshot_time.desc(),
                      mock_account_metrics.c.account_id)
        )
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(query).mappings().all()
        except SQLAlchemyError as exc:
            raise UpstreamReadFailure(f"Failed to fetch account metrics: {exc}") from exc

        # Two rows can share account_id and snapshot_time; keep the first
        seen = {}
        for r in rows:
            seen.setdefault(r["account_id"], dict(r))
        return list(seen.values())

    # --- WRITE ---
    def append_snapshots(self, snapshots):
        if not snapshots:
            return
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(mock_account_metrics), snapshots)
        except SQLAlchemyError as exc:
            raise UpstreamWriteFailure(f"Failed to store simulated metrics: {exc}") from exc

    def update_run_summary(self, last_run_time, accounts_count, suspension_rate):
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(simulation_config)
                    .where(simulation_config.c.id == CONFIG_ID)
                    .values(
                        last_update=last_run_time,
                        accounts_count=accounts_count,
                        suspension_rate=suspension_rate,
                    )
                )
        except SQLAlchemyError as exc:
            raise UpstreamWriteFailure(f"Failed to update simulation config: {exc}") from exc
        if result.rowcount == 0:
            raise UpstreamWriteFailure("Failed to update simulation config: config row is missing")

    def set_simulation_mode(self, enabled):
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    update(simulation_config)
                    .where(simulation_config.c.id == CONFIG_ID)
                    .values(simulation_mode=bool(enabled))
                )
        except SQLAlchemyError as exc:
            raise UpstreamWriteFailure(f"Failed to update simulation mode: {exc}") from exc
        logger.info(f"Simulation mode set to {bool(enabled)}")

    def upsert_account_definitions(self, accounts):
        try:
            with self.engine.begin() as conn:
                for a in accounts:
                    conn.execute(UPSERT_ACCOUNT, a)
        except SQLAlchemyError as exc:
            raise UpstreamWriteFailure(f"Failed to upsert mock accounts: {exc}") from exc
