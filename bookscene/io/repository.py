"""Book and volume persistence boundary.

Responsibilities:
- Define the `VolumeRepository` protocol the pipeline reads and writes through.
- Provide a lock-guarded in-memory repository and a JSON file repository.

Stored entities are copied on the way in and out so callers never share a
mutable tree with concurrent readers.
"""

from __future__ import annotations

import copy
from pathlib import Path
import threading
from typing import Protocol

from ..errors import VolumeNotFoundError
from ..models.entities import Book, Volume
from .storage import ArtifactStore


class VolumeRepository(Protocol):
    """Persistence interface for books and volumes."""

    def next_id(self) -> int:
        """Allocate a new identifier shared by books and volumes."""

    def save_book(self, book: Book) -> None:
        """Insert or replace a book."""

    def get_book(self, book_id: int) -> Book:
        """Load a book or raise `VolumeNotFoundError`."""

    def save_volume(self, volume: Volume) -> None:
        """Insert or replace a volume with its full chapter tree."""

    def get_volume(self, volume_id: int) -> Volume:
        """Load a volume or raise `VolumeNotFoundError`."""


class InMemoryVolumeRepository:
    """Process-local repository used by tests and single-run CLI commands."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._books: dict[int, Book] = {}
        self._volumes: dict[int, Volume] = {}
        self._last_id = 0

    def next_id(self) -> int:
        with self._lock:
            self._last_id += 1
            return self._last_id

    def save_book(self, book: Book) -> None:
        with self._lock:
            self._books[book.id] = copy.deepcopy(book)

    def get_book(self, book_id: int) -> Book:
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                raise VolumeNotFoundError(f"Book {book_id} not found.")
            return copy.deepcopy(book)

    def save_volume(self, volume: Volume) -> None:
        with self._lock:
            self._volumes[volume.id] = copy.deepcopy(volume)

    def get_volume(self, volume_id: int) -> Volume:
        with self._lock:
            volume = self._volumes.get(volume_id)
            if volume is None:
                raise VolumeNotFoundError(f"Volume {volume_id} not found.")
            return copy.deepcopy(volume)


class JsonVolumeRepository:
    """File-backed repository storing one JSON document per book and volume.

    Layout under `root`: `books/<id>.json`, `volumes/<id>.json`.
    """

    def __init__(self, root: Path) -> None:
        self.store = ArtifactStore(root)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            existing = [
                int(name)
                for directory in ("books", "volumes")
                for name in self.store.list_names(Path(directory))
                if name.isdigit()
            ]
            counter_path = Path("state.json")
            last_id = max(existing, default=0)
            if self.store.exists(counter_path):
                last_id = max(last_id, int(self.store.load_json(counter_path).get("last_id", 0)))
            next_value = last_id + 1
            self.store.save_json(counter_path, {"last_id": next_value})
            return next_value

    def save_book(self, book: Book) -> None:
        with self._lock:
            self.store.save_json(Path("books") / f"{book.id}.json", book.to_dict())

    def get_book(self, book_id: int) -> Book:
        path = Path("books") / f"{book_id}.json"
        with self._lock:
            if not self.store.exists(path):
                raise VolumeNotFoundError(f"Book {book_id} not found.")
            return Book.from_dict(self.store.load_json(path))

    def save_volume(self, volume: Volume) -> None:
        with self._lock:
            self.store.save_json(Path("volumes") / f"{volume.id}.json", volume.to_dict())

    def get_volume(self, volume_id: int) -> Volume:
        path = Path("volumes") / f"{volume_id}.json"
        with self._lock:
            if not self.store.exists(path):
                raise VolumeNotFoundError(f"Volume {volume_id} not found.")
            return Volume.from_dict(self.store.load_json(path))
