import os

from config.settings import DATA_DIR, BACKUP_FOLDER, FAILED_FOLDER, LOG_DIR as _LOG_DIR

BASE_DIR = DATA_DIR

BACKUP_DIR = BACKUP_FOLDER or os.path.join(BASE_DIR, "backup")
FAILED_DIR = FAILED_FOLDER or os.path.join(BASE_DIR, "failed")
LOG_DIR = _LOG_DIR or os.path.join(BASE_DIR, "logs")

LOG_FILE = os.path.join(LOG_DIR, "system.log")


def ensure_directories():
    for d in (
        BACKUP_DIR,
        FAILED_DIR,
        LOG_DIR,
    ):
        os.makedirs(d, exist_ok=True)
