"""Task utilities."""
from jobs.utils.database import task_services
from jobs.utils.locking import run_locked

__all__ = [
    "run_locked",
    "task_services",
]
