"""Synchronous volume creation ahead of job submission.

Responsibilities:
- Reject unsupported formats before any record or file is created.
- Create the owning book and the volume, store the upload, mark it uploaded.
"""

from __future__ import annotations

from typing import BinaryIO

from ..io.repository import VolumeRepository
from ..io.storage import StorageService
from ..models.entities import Book, Volume
from ..models.status import BookStatus, VolumeStatus
from ..parsing import normalize_file_format, normalize_optional_string
from ..telemetry.logger import RunLogger


class VolumeIntake:
    """Create book and volume records for a new manuscript upload."""

    def __init__(
        self,
        repository: VolumeRepository,
        storage: StorageService,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.run_logger = run_logger or RunLogger()

    def create_volume(
        self,
        file_name: str,
        reader: BinaryIO,
        book_title: str | None = None,
    ) -> Volume:
        """Store `reader` as a new volume and return it in `uploaded` status.

        Raises:
            UnsupportedFormatError: `file_name` has no accepted extension.
        """

        file_format = normalize_file_format(file_name)

        book = Book(
            id=self.repository.next_id(),
            title=normalize_optional_string(book_title) or "Untitled",
            status=BookStatus.DRAFT.value,
        )
        self.repository.save_book(book)

        volume = Volume(
            id=self.repository.next_id(),
            book_id=book.id,
            title=file_name,
            file_path="",
            file_format=file_format,
        )
        stored_path = self.storage.save_book_file(str(book.id), str(volume.id), reader)
        volume.file_path = str(stored_path)
        volume.transition_to(VolumeStatus.UPLOADED)
        self.repository.save_volume(volume)

        self.run_logger.log_event(
            "INFO",
            "volume_created",
            "intake",
            book_id=book.id,
            volume_id=volume.id,
            file_format=file_format,
        )
        return volume
