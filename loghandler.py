import os
import glob
import logging
from datetime import datetime

_logger = None
_activity_logger = None
activity_log_file = None

ACTIVITY_HEADER = "timestamp,freq_MHz,mode,label,strength_dBFS,squelch_dBFS,duration_s"

def setup_logging(log_dir="logs", clear_old=False, debug=False):
    global _logger, _activity_logger, activity_log_file

    os.makedirs(log_dir, exist_ok=True)

    if clear_old:
        clear_old_logs(log_dir)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    general_log_file = os.path.join(log_dir, f"gqrx-scanner_{timestamp}.log")
    activity_log_file = os.path.join(log_dir, f"activity_{timestamp}.csv")

    # Main logger
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(general_log_file, encoding="utf-8"),
            logging.StreamHandler()
        ],
        force=True,
    )

    _logger = logging.getLogger()
    _logger.debug(f"Log file created: {general_log_file}")
    _logger.debug(f"Channel activity will be written to: {activity_log_file}")
    _logger.debug(f"Logging level set to: {'DEBUG' if debug else 'INFO'}")

    # Activity logger (CSV rows, no timestamps prefix, file only)
    _activity_logger = logging.getLogger("activity")
    _activity_logger.setLevel(logging.INFO)
    for h in list(_activity_logger.handlers):
        _activity_logger.removeHandler(h)
        h.close()

    activity_handler = logging.FileHandler(activity_log_file, encoding="utf-8")
    activity_handler.setFormatter(logging.Formatter('%(message)s'))
    _activity_logger.addHandler(activity_handler)
    _activity_logger.propagate = False  # Don't send to root logger
    _activity_logger.info(ACTIVITY_HEADER)

    return _logger, activity_log_file

def get_activity_logger():
    if _activity_logger is None:
        raise RuntimeError("Activity logger not initialized. Call setup_logging() first.")
    return _activity_logger

def clear_old_logs(log_dir: str) -> int:
    if not os.path.exists(log_dir):
        return 0

    patterns = ["*.log", "*.csv"]
    deleted = 0

    for pattern in patterns:
        for file in glob.glob(os.path.join(log_dir, pattern)):
            try:
                os.remove(file)
                deleted += 1
            except OSError as e:
                print(f"Failed to delete {file}: {e}")

    print(f"Cleared {deleted} old log files.")
    return deleted
