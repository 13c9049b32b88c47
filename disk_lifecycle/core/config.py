"""
Disk Lifecycle - Configuration Management

This module manages configuration options for disk lifecycle workflows.
Defaults can be overridden from a YAML file and from command-line flags.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

# Version for usage tracking
VERSION = '1.0.0'

STATE_DIR_ENV = 'DISK_LIFECYCLE_STATE_DIR'


def default_state_dir() -> str:
    """Directory holding one JSON record per workflow run."""
    return os.environ.get(STATE_DIR_ENV) or str(Path.home() / '.disk-lifecycle' / 'runs')


@dataclass
class LifecycleConfig:
    """
    Configuration for lifecycle workflows.

    Example:
        config = LifecycleConfig(
            poll_timeout=300,
            max_retries=5
        )
    """

    # Polling settings (in seconds)
    poll_timeout: float = 600  # 10 minutes per step
    poll_interval: float = 5

    # Retry settings
    max_retries: int = 3  # retries after the first try
    backoff_base: float = 2.0
    backoff_cap: float = 30.0

    # Resource defaults
    default_sku: str = 'pd-standard'
    default_lun: int = 1
    default_zone: Optional[str] = None

    # Persistence
    state_dir: Optional[str] = None

    # Logging settings
    log_level: str = 'INFO'
    log_file: Optional[str] = None

    # Behavior settings
    dry_run: bool = False  # Simulate against an in-memory cloud
    show_progress: bool = True

    def __post_init__(self):
        if self.state_dir is None:
            self.state_dir = default_state_dir()
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.poll_timeout <= 0:
            raise ValueError("poll_timeout must be positive")


def load_config(path: Optional[str] = None, **overrides) -> LifecycleConfig:
    """
    Build a configuration from an optional YAML file plus overrides.

    Overrides whose value is None are ignored, so CLI flags that were not
    given don't clobber values from the file.

    Args:
        path: Optional path to a YAML mapping of LifecycleConfig fields
        **overrides: Explicit field values

    Returns:
        LifecycleConfig: Configuration object

    Raises:
        ValueError: If the file or overrides name an unknown field

    Example:
        config = load_config('~/.disk-lifecycle.yaml', poll_timeout=120)
    """
    known = {f.name for f in fields(LifecycleConfig)}
    values = {}

    if path:
        with open(os.path.expanduser(path), 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        values.update(data)

    values.update({k: v for k, v in overrides.items() if v is not None})

    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    return LifecycleConfig(**values)
