"""Filesystem storage for uploaded manuscripts and persisted documents.

Responsibilities:
- Store uploaded source files under a deterministic per-book, per-volume path.
- Provide JSON document persistence used by the file-backed repository.
"""

from __future__ import annotations

import json
from pathlib import Path
import shutil
from typing import BinaryIO, Protocol


class ArtifactStore:
    """Filesystem-backed JSON and text document store rooted at one directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root directory."""

        self.root = root

    def save_json(self, relative_path: Path, payload: dict[str, object]) -> Path:
        """Save JSON-serializable payload and return final path."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        temp_path.replace(path)
        return path

    def load_json(self, relative_path: Path) -> dict[str, object]:
        """Load a JSON object from the store."""

        payload = json.loads((self.root / relative_path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Stored document `{relative_path}` is not a JSON object.")
        return payload

    def list_names(self, relative_dir: Path, suffix: str = ".json") -> list[str]:
        """Return sorted file stems with `suffix` inside one store directory."""

        directory = self.root / relative_dir
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob(f"*{suffix}"))

    def exists(self, relative_path: Path) -> bool:
        """Return whether the given document exists."""

        return (self.root / relative_path).exists()


class StorageService(Protocol):
    """Interface for manuscript file storage drivers."""

    def save_book_file(self, owner_id: str, volume_id: str, reader: BinaryIO) -> Path:
        """Persist an uploaded manuscript stream and return its stored path."""


class LocalStorage:
    """Local-disk storage driver writing `book_<owner>/vol_<volume>/source_file`."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def init(self) -> None:
        """Create the base directory when missing."""

        self.base_path.mkdir(parents=True, exist_ok=True)

    def save_book_file(self, owner_id: str, volume_id: str, reader: BinaryIO) -> Path:
        """Copy `reader` into the volume directory and return the stored file path."""

        directory = self.base_path / f"book_{owner_id}" / f"vol_{volume_id}"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "source_file"
        with path.open("wb") as handle:
            shutil.copyfileobj(reader, handle)
        return path