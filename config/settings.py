import os
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()  # .env 로드


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in ("1", "true", "yes", "on")


# ==========================
# DB
# ==========================

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_PATH = os.getenv("DATABASE_PATH", "./data/database.sqlite")

DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_NAME = os.getenv("DB_NAME")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_CHARSET = os.getenv("DB_CHARSET", "utf8mb4")


# ==========================
# 데이터 영역 (백업 / 실패 / 로그)
# ==========================

DATA_DIR = os.getenv("DATA_DIR", "./data")
BACKUP_FOLDER = os.getenv("BACKUP_FOLDER")
FAILED_FOLDER = os.getenv("FAILED_FOLDER")
LOG_DIR = os.getenv("LOG_DIR")


# ==========================
# 파이프라인
# ==========================

MAX_FILENAME_LENGTH = int(os.getenv("MAX_FILENAME_LENGTH", "50"))
OCR_TEXT_MAX_LENGTH = int(os.getenv("OCR_TEXT_MAX_LENGTH", "10000"))

OCR_LANG = os.getenv("OCR_LANG", "kor+eng")
OCR_MAX_PAGES = int(os.getenv("OCR_MAX_PAGES", "5"))
OCR_DPI = int(os.getenv("OCR_DPI", "300"))


# ==========================
# 폴더 감시
# ==========================

WATCH_STABILITY_SECONDS = float(os.getenv("WATCH_STABILITY_SECONDS", "2"))
WATCH_STABILITY_POLL = float(os.getenv("WATCH_STABILITY_POLL", "0.1"))
WATCH_READY_TIMEOUT = float(os.getenv("WATCH_READY_TIMEOUT", "60"))
WATCH_POLL_INTERVAL = float(os.getenv("WATCH_POLL_INTERVAL", "5"))

LOCAL_WATCH_ENABLED = _env_bool("LOCAL_WATCH_ENABLED")
LOCAL_WATCH_FOLDER = os.getenv("LOCAL_WATCH_FOLDER", "./data/watch")

# POSIX 에서 SMB 공유는 미리 마운트 되어 있어야 함: <SMB_MOUNT_ROOT>/<host>/<share>
SMB_MOUNT_ROOT = os.getenv("SMB_MOUNT_ROOT", "/mnt/smb")


def build_database_url() -> str:
    """
    DB 접속 URL 결정

    우선순위: DATABASE_URL > MySQL(DB_HOST 설정 시) > SQLite(DATABASE_PATH)
    """
    if DATABASE_URL:
        return DATABASE_URL

    if DB_HOST:
        validate_settings()
        password = quote_plus(DB_PASSWORD)
        return (
            f"mysql+pymysql://{DB_USER}:{password}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
            f"?charset={DB_CHARSET}"
        )

    db_path = os.path.abspath(DATABASE_PATH)
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    return f"sqlite:///{db_path}"


def validate_settings():
    missing = [
        k for k, v in {
            "DB_HOST": DB_HOST,
            "DB_NAME": DB_NAME,
            "DB_USER": DB_USER,
            "DB_PASSWORD": DB_PASSWORD,
        }.items() if not v
    ]
    if missing:
        raise RuntimeError(f"❌ 환경변수 누락: {', '.join(missing)}")
