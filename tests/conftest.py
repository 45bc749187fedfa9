import os
import tempfile

# 프로젝트 모듈 import 전에 임시 DB / 데이터 폴더 지정
_TEST_ROOT = tempfile.mkdtemp(prefix="rename-pipeline-")
os.environ["DATA_DIR"] = _TEST_ROOT
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'app.sqlite')}"
os.environ["LOCAL_WATCH_ENABLED"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config.db import init_db
from pipeline.exceptions import ConfigurationError, ExtractionError
from pipeline.runner import build_context
from pipeline.store import FileStore
from services.analyzer import DocumentAnalysis
from services.folder_resolver import ShareSessionProvider
from services.loaders.base import BaseTextExtractor


class FakeExtractor(BaseTextExtractor):
    def __init__(self, text: str = "ACME Corp\nINVOICE No. 2024-001"):
        self.text = text
        self.error = None
        self.calls = []

    def extract_text(self, file_path: str) -> str:
        self.calls.append(file_path)
        if self.error:
            raise ExtractionError(self.error)
        return self.text


class FakeAnalyzer:
    def __init__(self, company: str = "Acme", summary: str = "Invoice", confidence: int = 90):
        self.result = DocumentAnalysis(company, summary, confidence)
        self.calls = []

    def analyze(self, text: str) -> DocumentAnalysis:
        self.calls.append(text)
        return self.result


class FakeShareProvider(ShareSessionProvider):
    """(host, share) → 로컬 디렉터리"""

    def __init__(self):
        self.roots = {}
        self.calls = []

    def connect(self, host, share, username, password):
        self.calls.append((host, share, username))
        root = self.roots.get((host, share))
        if root is None:
            raise ConfigurationError(f"연결 실패: {host}/{share}")
        return root


def write_pdf(directory, name: str, content: bytes = b"%PDF-1.4 test document") -> str:
    path = os.path.join(str(directory), name)
    with open(path, "wb") as f:
        f.write(content)
    return path


@pytest.fixture
def make_pdf():
    return write_pdf


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.sqlite'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
def store(session_factory):
    return FileStore(session_factory)


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def share_provider():
    return FakeShareProvider()


@pytest.fixture
def data_dirs(tmp_path):
    backup = tmp_path / "backup"
    failed = tmp_path / "failed"
    backup.mkdir()
    failed.mkdir()
    return {"backup": str(backup), "failed": str(failed)}


@pytest.fixture
def watch_dir(tmp_path):
    path = tmp_path / "watch"
    path.mkdir()
    return path


@pytest.fixture
def ctx(session_factory, extractor, analyzer, share_provider, data_dirs):
    ctx = build_context(
        session_factory=session_factory,
        extractor=extractor,
        analyzer=analyzer,
        provider=share_provider,
        backup_dir=data_dirs["backup"],
        failed_dir=data_dirs["failed"],
        stability_seconds=0.05,
        stability_poll=0.01,
        ready_timeout=5,
        poll_interval=0.1,
    )
    yield ctx
    ctx.queue.join(timeout=5)
    ctx.watchers.close()


@pytest.fixture
def local_folder(ctx, watch_dir):
    return ctx.store.create_folder(alias="스캔함", path=str(watch_dir))
