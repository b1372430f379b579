"""
logging_config.py — Log Output for the Checkout Service

Checkout logs are the record support works from when a shopper has paid but
has no order: CRITICAL lines name the provider intent and payment ids that need
manual reconciliation. Every line therefore goes to a file that survives
restarts as well as to stdout for the container log collector.

Log lines from the workflow carry a `[Checkout: <intent id>]` prefix so one
payment can be followed from intent creation to the written order.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s'

# Client libraries that log every provider or Firestore request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "google", "urllib3")


def setup_logging(log_file: str = "checkout.log"):
    """
    Sends checkout logs to `log_file` and stdout at INFO.

    Args:
        log_file (str): Path of the persistent log file (LOG_FILE setting).
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
