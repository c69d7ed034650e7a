"""Bookscene pipeline package.

This package contains volume intake, the enhancement orchestrator and its
phase mixins, retry timing, and the read-only volume report.
"""

from .intake import VolumeIntake
from .orchestrator import VolumeEnhancementPipeline
from .report import VolumeReport
from .retry import RetryPolicy

__all__ = ["RetryPolicy", "VolumeEnhancementPipeline", "VolumeIntake", "VolumeReport"]
