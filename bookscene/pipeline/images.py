"""Image generation phase.

Responsibilities:
- Generate one image per scene that lacks one, in chapter/section order.
- Retry each image a fixed number of times, then leave the scene imageless.
"""

from __future__ import annotations

from collections.abc import Callable

from ..errors import ProviderError
from ..images import ImageService
from ..jobs.models import ProgressReporter
from ..models.entities import Volume
from .retry import RetryPolicy

IMAGE_PROGRESS_START = 60
IMAGE_PROGRESS_SPAN = 35


class ImageGenerationMixin:
    """Provide scene image generation for the pipeline."""

    image_service: ImageService
    retry_policy: RetryPolicy
    sleeper: Callable[[float], None]

    def _generate_images_for_volume(
        self, volume: Volume, report_progress: ProgressReporter
    ) -> int:
        """Generate missing images and return how many scenes still lack one.

        Any image failure leaves that scene without an image and never fails
        the volume.
        """

        targets = [
            section.scene
            for _, section in volume.iter_sections()
            if section.scene is not None and not section.scene.has_image
        ]
        if not targets:
            return 0

        missing = 0
        for index, scene in enumerate(targets, start=1):
            try:
                scene.image_ref = self.generate_image_with_retry(scene.image_prompt)
            except Exception as exc:
                missing += 1
                self._on_skip(
                    "images",
                    "image_skipped",
                    volume_id=volume.id,
                    failure_kind=getattr(exc, "failure_kind", "unknown"),
                    error_type=type(exc).__name__,
                )
            self._advance(
                volume,
                IMAGE_PROGRESS_START + index * IMAGE_PROGRESS_SPAN // len(targets),
                report_progress,
            )
        return missing

    def generate_image_with_retry(self, prompt: str) -> str:
        """Generate one image in exactly `max_retries` attempts at most.

        Raises:
            ProviderError: The last attempt's error once the budget is spent.
        """

        attempts = self.retry_policy.max_retries
        for attempt in range(1, attempts + 1):
            try:
                return self.image_service.generate_image(prompt)
            except ProviderError as exc:
                self._on_skip(
                    "images",
                    "image_attempt_failed",
                    attempt=attempt,
                    failure_kind=exc.failure_kind,
                )
                if attempt >= attempts:
                    raise
                self.sleeper(self.retry_policy.backoff(attempt))
        raise ProviderError("Image generation was not attempted.", failure_kind="unknown")
