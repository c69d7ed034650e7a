"""Top-level package for Bookscene.

This package ingests manuscripts (EPUB, PDF, plain text), detects their
chapter/section structure, and enriches each volume with AI-generated scenes
and illustrations. The main orchestration entry point is
`VolumeEnhancementPipeline`; background execution goes through `JobDispatcher`.
"""

from .jobs import JobDispatcher
from .pipeline import VolumeEnhancementPipeline

__all__ = ["JobDispatcher", "VolumeEnhancementPipeline", "__version__"]

__version__ = "0.1.0"
