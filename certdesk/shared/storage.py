import json
import os
import tempfile
from typing import Optional


def ensure_dir(path: str) -> None:
    """Create directory if missing (mkdir -p equivalent)."""
    os.makedirs(path, exist_ok=True)


def write_atomic(path: str, data, mode: str = "wb") -> None:
    """Write data to a temporary file then atomically rename to target path."""
    dir_path = os.path.dirname(path)
    ensure_dir(dir_path)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path)
    try:
        with os.fdopen(fd, mode) as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def snapshot_path(store_dir: str, name: str) -> str:
    return os.path.join(store_dir, f"{name}.json")


def read_snapshot(store_dir: str, name: str) -> Optional[dict]:
    """Return the persisted ``state`` mapping, or None when nothing was saved."""
    path = snapshot_path(store_dir, name)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ValueError(f"Snapshot {path} is not an object")
    state = payload.get("state")
    return state if isinstance(state, dict) else None


def write_snapshot(store_dir: str, name: str, state: dict, version: int = 0) -> str:
    path = snapshot_path(store_dir, name)
    body = json.dumps({"state": state, "version": version})
    write_atomic(path, body, mode="w")
    return path
