import logging
import os
from datetime import datetime


def setup_logger(log_dir="logs", log_file=None, prefix="pipeline", level=logging.INFO):
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    if not log_file:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M")
        log_file = f"{prefix}_{timestamp}.log"

    log_path = os.path.join(log_dir, log_file)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler()
        ],
        force=True
    )

    logging.info(f"Logger initialised, logs are written to: {log_path}")
    return log_path
