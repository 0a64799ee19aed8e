"""Distributed cron scheduling for the cronify package.

Job definitions live in a shared store, and any number of schedulers
poll it for due jobs, push their payloads onto a work queue and advance
their next run. This module exposes the entrypoint, the job model and the
scheduling primitives the entrypoint is built from.
"""

from importlib.metadata import version as get_version

from cronify._internal.clock import ServerClock
from cronify._internal.common.constants import LoopState
from cronify._internal.job import Job, JobPatch
from cronify._internal.scheduler.loop import SchedulerLoop
from cronify.cronify import Cronify
from cronify.crontab import next_occurrence

__version__ = get_version("cronify")
__all__ = (
    "Cronify",
    "Job",
    "JobPatch",
    "LoopState",
    "SchedulerLoop",
    "ServerClock",
    "next_occurrence",
)
