"""Background job execution for Bookscene.

This package contains the bounded worker-pool dispatcher, its progress
registry, and the job contracts it executes.
"""

from .dispatcher import JobDispatcher, ProgressRegistry
from .models import JobRequest, JobResult, JobWork, ProgressReporter, status_for
from .volume_job import JobMode, VolumeProcessingJob, job_id_for

__all__ = [
    "JobDispatcher",
    "JobMode",
    "JobRequest",
    "JobResult",
    "JobWork",
    "ProgressRegistry",
    "ProgressReporter",
    "VolumeProcessingJob",
    "job_id_for",
    "status_for",
]
