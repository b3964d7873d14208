"""
Simulation Scheduler: asks the API to synthesize a fresh batch of account
metrics every few minutes.

Usage:
    python data_pipeline/scheduler.py

The interval comes from SIMULATION_INTERVAL_MINUTES, else from
simulation_config.update_interval, else 5 minutes. The scheduler keeps
running in the foreground. Press Ctrl+C to stop.
"""
import logging
import os
import sys
import time

import schedule
from dotenv import load_dotenv

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from data_pipeline.store import AccountStore, StoreError
from data_pipeline.trigger import trigger_simulation

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 5


def run_simulation_job():
    logger.info("Starting scheduled simulation run...")
    try:
        result = trigger_simulation()
    except Exception as e:
        logger.error(f"Simulation failed: {e}")
        return None

    if result.get("success"):
        logger.info(f"Simulation completed: {result.get('message')}")
    else:
        logger.warning(f"Simulation did not run: {result.get('message')}")
    return result


def resolve_interval(store=None):
    env_value = os.getenv("SIMULATION_INTERVAL_MINUTES")
    if env_value:
        return int(env_value)
    if store is not None:
        try:
            config = store.get_simulation_config()
        except StoreError as e:
            logger.warning(f"Could not read update_interval, using default: {e}")
            return DEFAULT_INTERVAL_MINUTES
        if config and config.get("update_interval"):
            return int(config["update_interval"])
    return DEFAULT_INTERVAL_MINUTES


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    interval = resolve_interval(AccountStore())

    # Run once immediately on startup to populate data
    run_simulation_job()

    schedule.every(interval).minutes.do(run_simulation_job)
    logger.info(f"Scheduler running, simulation will execute every {interval} min. Press Ctrl+C to stop.")

    while True:
        schedule.run_pending()
        time.sleep(1)


if __name__ == "__main__":
    main()
