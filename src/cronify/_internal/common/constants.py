from enum import Enum, unique

ONE_SECOND_MS = 1000
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_DATABASE = "cronify.db"
DEFAULT_JOBS_TABLE = "cronify_jobs"
DEFAULT_TASKS_TABLE = "cronify_tasks"


@unique
class LoopState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
