import os
import shutil
from datetime import datetime, timezone
from typing import Iterable, Optional


def timestamp_prefix(now: Optional[datetime] = None) -> str:
    """
    ISO 형식 타임스탬프 (파일명에 쓸 수 없는 ':' '.' 는 '-' 로 치환)
    예: 2026-10-18T03-12-45-123Z
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z")
    return stamp.replace(":", "-").replace(".", "-")


def copy_with_timestamp(src: str, dest_dir: str) -> str:
    """
    원본은 그대로 두고 dest_dir 에 '<timestamp>_<filename>' 으로 복사
    같은 밀리초에 이미 있으면 '<timestamp>-1_<filename>', '-2' ...
    """
    os.makedirs(dest_dir, exist_ok=True)

    filename = os.path.basename(src)
    stamp = timestamp_prefix()
    dest = os.path.join(dest_dir, f"{stamp}_{filename}")

    # 원본 파일명은 항상 첫 '_' 뒤에 그대로 남겨 둠
    i = 1
    while os.path.exists(dest):
        dest = os.path.join(dest_dir, f"{stamp}-{i}_{filename}")
        i += 1

    shutil.copy2(src, dest)
    return dest


def resolve_duplicate_filename(existing_names: Iterable[str], filename: str) -> str:
    """
    이름 충돌 시 '_1', '_2' ... 를 붙여 유일한 파일명 반환
    """
    existing = set(existing_names)
    if filename not in existing:
        return filename

    base, ext = os.path.splitext(filename)
    i = 1
    while True:
        candidate = f"{base}_{i}{ext}"
        if candidate not in existing:
            return candidate
        i += 1


def _backup_order(name: str):
    # '<timestamp>[-N]' → (timestamp, N)
    prefix = name.partition("_")[0]
    stamp, _, counter = prefix.partition("Z")
    counter = counter.lstrip("-")
    return stamp, int(counter) if counter.isdigit() else 0


def find_latest_backup(backup_dir: str, filename: str) -> Optional[str]:
    """
    '<timestamp>_<filename>' 형태의 백업 중 가장 최근 것
    (타임스탬프에는 '_' 가 없으므로 첫 '_' 뒤가 원본 파일명과 정확히 같아야 함)
    """
    if not os.path.isdir(backup_dir):
        return None

    matches = [f for f in os.listdir(backup_dir) if f.partition("_")[2] == filename]
    if not matches:
        return None
    return os.path.join(backup_dir, max(matches, key=_backup_order))
