"""Utils package."""

from disk_lifecycle.utils.logger import setup_logging, get_logger
from disk_lifecycle.utils.progress import ProgressTracker, SimpleProgressTracker, create_progress_tracker
from disk_lifecycle.utils.retry import compute_backoff

__all__ = [
    'setup_logging',
    'get_logger',
    'ProgressTracker',
    'SimpleProgressTracker',
    'create_progress_tracker',
    'compute_backoff',
]
