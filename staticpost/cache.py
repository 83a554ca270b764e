from __future__ import annotations

import hashlib
import json
from pathlib import Path

MANIFEST_NAME = ".staticpost-manifest.json"
MANIFEST_VERSION = 1


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def hash_file(path: Path) -> str:
    return hash_bytes(path.read_bytes())


def load_manifest(output_dir: Path) -> dict[str, str]:
    """Managed paths (posix, relative to ``output_dir``) from the previous build."""
    path = output_dir / MANIFEST_NAME
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
    if not isinstance(data, dict) or data.get("version") != MANIFEST_VERSION:
        return {}
    files = data.get("files")
    return dict(files) if isinstance(files, dict) else {}


def manifest_text(files: dict[str, str]) -> str:
    data = {"version": MANIFEST_VERSION, "files": dict(sorted(files.items()))}
    return json.dumps(data, indent=2, ensure_ascii=True) + "\n"
