"""Run event logging for dispatcher, pipeline, and provider activity."""

from .logger import RunLogger

__all__ = ["RunLogger"]
