from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from portal.core.settings import get_settings

DEFAULT_SUBDIRS = [
    "statements",
    "workbooks",
]


def ensure_uploads_root() -> Path:
    """Ensure the upload folders exist and return the root path."""

    root = get_settings().uploads_root
    for sub in DEFAULT_SUBDIRS:
        (root / sub).mkdir(parents=True, exist_ok=True)
    return root


def save_upload(zone: str, filename: str, source: BinaryIO) -> Path:
    """Persist an uploaded file under ``zone`` with a collision-free name."""

    safe_name = Path(filename).name
    root = ensure_uploads_root()
    target = root / zone / f"{uuid.uuid4().hex[:12]}_{safe_name}"
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as buffer:
        shutil.copyfileobj(source, buffer)
    return target

