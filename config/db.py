from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config.settings import build_database_url

DB_URL = build_database_url()

_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(
    DB_URL,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=_connect_args,
    echo=False
)

# 워커 스레드 / API 에서 세션 종료 후에도 객체를 읽을 수 있도록 expire_on_commit=False
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine
)

Base = declarative_base()


def init_db(bind=None):
    # 모델 등록 후 테이블 생성
    import models.folder  # noqa: F401
    import models.file_process  # noqa: F401
    import models.process_log  # noqa: F401
    import models.processing_state  # noqa: F401
    import models.settings  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
