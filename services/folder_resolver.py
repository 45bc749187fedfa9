# services/folder_resolver.py
"""
감시 폴더 → 실제 접근 가능한 경로

- local : 설정된 경로 그대로 (존재 여부는 호출 측에서 확인)
- remote: 공유 세션 연결(handshake) 후 경로 반환
          매 호출마다 연결을 다시 검증하고, 결과는 상태 조회용으로만 캐시
"""

import os
import re
import logging
import platform
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import urlparse

from config.settings import SMB_MOUNT_ROOT
from pipeline.exceptions import ConfigurationError

logger = logging.getLogger("resolver")

CONNECT_TIMEOUT = 30
DISCONNECT_TIMEOUT = 5


@dataclass
class ResolveResult:
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None


@dataclass
class ShareConnection:
    host: str
    share: str
    username: str
    path: str
    is_connected: bool
    last_checked: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "share": self.share,
            "username": self.username,
            "path": self.path,
            "is_connected": self.is_connected,
            "last_checked": self.last_checked.isoformat(),
            "error": self.error,
        }


def to_unc_path(host: str, share: str, sub_path: Optional[str] = None) -> str:
    unc = f"\\\\{host}\\{share}"
    if sub_path:
        unc += "\\" + sub_path.replace("/", "\\").strip("\\")
    return unc


def parse_smb_url(url: str) -> dict:
    """
    예: https://nas.example.com:5001/   -> {host, port, is_web_ui: True}
        \\\\nas.example.com\\FAX3\\in    -> {host, share, sub_path}
        smb://nas.example.com/FAX3/in   -> {host, share, sub_path}
        nas.example.com                 -> {host}
    """
    url = (url or "").strip()

    if url.startswith(("http://", "https://")):
        parsed = urlparse(url)
        return {
            "host": parsed.hostname,
            "port": parsed.port or (443 if parsed.scheme == "https" else 80),
            "is_web_ui": True,
        }

    unc = re.match(r"^\\\\([^\\]+)\\(.+)$", url)
    smb = re.match(r"^smb://([^/]+)/(.+)$", url)
    match = unc or smb
    if match:
        sep = "\\" if unc else "/"
        parts = [p for p in match.group(2).split(sep) if p]
        return {
            "host": match.group(1),
            "share": parts[0] if parts else None,
            "sub_path": "/".join(parts[1:]) or None,
        }

    return {"host": url}


# =================================================
# 공유 세션 Provider
# =================================================


class ShareSessionProvider(ABC):
    @abstractmethod
    def connect(self, host: str, share: str, username: str, password: str) -> str:
        """
        세션 연결 후 공유 루트의 접근 경로 반환

        실패 시 ConfigurationError
        """


class NetUseSessionProvider(ShareSessionProvider):
    """Windows: 'net use' 로 UNC 경로 인증"""

    def connect(self, host: str, share: str, username: str, password: str) -> str:
        unc = to_unc_path(host, share)

        # 기존 연결 해제 (없으면 실패하지만 무시)
        subprocess.run(
            ["net", "use", unc, "/delete", "/y"],
            capture_output=True, timeout=DISCONNECT_TIMEOUT, check=False,
        )

        command = ["net", "use", unc]
        if password:
            command.append(password)
        if username:
            command.append(f"/user:{username}")

        try:
            result = subprocess.run(
                command, capture_output=True, text=True,
                timeout=CONNECT_TIMEOUT, check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ConfigurationError(f"연결 실패: {e}") from e

        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip()
            raise ConfigurationError(f"연결 실패: {message or result.returncode}")

        return unc


class MountedShareSessionProvider(ShareSessionProvider):
    """
    Linux/Mac: 공유폴더를 '<mount_root>/<host>/<share>' 에 미리 마운트 해야 함
    (자격 증명은 마운트 시점에 사용되므로 여기서는 접근 가능 여부만 검증)
    """

    def __init__(self, mount_root: str = SMB_MOUNT_ROOT):
        self.mount_root = mount_root

    def connect(self, host: str, share: str, username: str, password: str) -> str:
        path = os.path.join(self.mount_root, host, share)
        if not os.path.isdir(path):
            raise ConfigurationError(
                f"SMB 폴더가 마운트되어 있지 않습니다: {path} "
                f"(\\\\{host}\\{share} 를 먼저 마운트하세요)"
            )
        try:
            os.listdir(path)
        except OSError as e:
            raise ConfigurationError(f"폴더 읽기 실패: {e}") from e
        return path


def default_session_provider() -> ShareSessionProvider:
    if platform.system() == "Windows":
        return NetUseSessionProvider()
    return MountedShareSessionProvider()


# =================================================
# Resolver
# =================================================


class FolderResolver:
    def __init__(self, provider: Optional[ShareSessionProvider] = None):
        self.provider = provider or default_session_provider()
        self._connections: Dict[str, ShareConnection] = {}
        self._lock = threading.Lock()

    def resolve(self, folder) -> ResolveResult:
        if not folder.is_remote:
            if not folder.path:
                return ResolveResult(error="폴더 경로가 비어있습니다.")
            return ResolveResult(path=folder.path)

        if not folder.smb_host or not folder.smb_share:
            return ResolveResult(error=f"SMB 접속 정보가 없습니다: {folder.alias}")

        try:
            base = self._connect(
                folder.smb_host,
                folder.smb_share,
                folder.smb_username or "",
                folder.smb_password or "",
            )
        except ConfigurationError as e:
            return ResolveResult(error=e.message)

        sub_path = (folder.path or "").strip("\\/")
        if not sub_path:
            return ResolveResult(path=base)
        if base.startswith("\\\\"):
            return ResolveResult(path=to_unc_path(folder.smb_host, folder.smb_share, sub_path))
        return ResolveResult(path=os.path.join(base, *re.split(r"[\\/]+", sub_path)))

    def test_connection(self, host: str, share: str, username: str = "",
                        password: str = "") -> dict:
        """연결 테스트 + 공유 루트의 PDF 최대 10개"""
        try:
            base = self._connect(host, share, username, password)
            files = sorted(f for f in os.listdir(base) if f.lower().endswith(".pdf"))
        except ConfigurationError as e:
            return {"success": False, "error": e.message}
        except OSError as e:
            return {"success": False, "error": f"폴더 읽기 실패: {e}"}

        return {"success": True, "path": base, "files": files[:10]}

    def connection_status(self) -> List[ShareConnection]:
        with self._lock:
            return list(self._connections.values())

    def get_connection(self, host: str, share: str) -> Optional[ShareConnection]:
        with self._lock:
            return self._connections.get(f"{host}/{share}")

    def clear_cache(self):
        with self._lock:
            self._connections.clear()

    def _connect(self, host: str, share: str, username: str, password: str) -> str:
        key = f"{host}/{share}"
        try:
            path = self.provider.connect(host, share, username, password)
        except ConfigurationError as e:
            logger.warning(f"[SMB] connect failed: {key} -> {e.message}")
            self._remember(ShareConnection(
                host=host, share=share, username=username,
                path=to_unc_path(host, share), is_connected=False, error=e.message,
            ))
            raise

        self._remember(ShareConnection(
            host=host, share=share, username=username, path=path, is_connected=True,
        ))
        logger.info(f"[SMB] connected: {key} -> {path}")
        return path

    def _remember(self, connection: ShareConnection):
        with self._lock:
            self._connections[f"{connection.host}/{connection.share}"] = connection
