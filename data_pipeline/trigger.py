import logging
import os
import time

import requests
from dotenv import load_dotenv

# CONFIG
load_dotenv()
API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

logger = logging.getLogger(__name__)


def trigger_simulation(base_url=None, max_retries=3, timeout=30):
    """
    Ask the API to run one simulation and return its JSON body.

    Transport failures (connection errors, HTTP 5xx) are retried with
    exponential backoff: 1s, 2s, 4s... The last failure is re-raised.
    """
    url = f"{base_url or API_BASE_URL}/simulate-fb-data"
    for attempt in range(1, max_retries + 1):
        try:
            response = requests.post(url, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            if attempt == max_retries:
                raise
            delay = 2 ** (attempt - 1)
            logger.warning(f"Simulation trigger attempt {attempt} failed ({e}), retrying in {delay}s")
            time.sleep(delay)
