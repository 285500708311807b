import logging
import os
from datetime import datetime

from studio_geocoding.config import LOG_DIR


def setup_logging(level=logging.INFO, log_dir=LOG_DIR):
    """
    Configure root logging with a dated file under `log_dir` plus the console.
    Safe to call more than once; basicConfig ignores repeat calls.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_filename = os.path.join(log_dir, f'geocoding_{datetime.now().strftime("%Y%m%d")}.log')

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )
    return logging.getLogger("studio_geocoding")
