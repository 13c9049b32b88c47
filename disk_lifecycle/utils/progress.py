"""
Disk Lifecycle - Progress Tracking

Visual step progress for workflow runs, rendered with tqdm.
"""

import sys

from tqdm import tqdm


class ProgressTracker:
    """
    Track progress of a workflow run with a tqdm bar.

    Example:
        with ProgressTracker(total_steps=5, desc="Run abc123") as tracker:
            tracker.update_step("Create disk")
            # ... do work ...
            tracker.advance()
    """

    def __init__(self, total_steps: int, desc: str = "Workflow", initial: int = 0, file=None):
        """
        Initialize progress tracker.

        Args:
            total_steps: Total number of steps in the run
            desc: Description of the run
            initial: Steps already completed (for resumed runs)
            file: Output stream (default: stderr)
        """
        self.total_steps = total_steps
        self.current_step = initial
        self.initial = initial
        self.desc = desc
        self.file = file or sys.stderr
        self.bar = None

    def start(self):
        """Start the progress tracker."""
        self.bar = tqdm(
            total=self.total_steps,
            initial=self.initial,
            desc=self.desc,
            bar_format='{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}]',
            ncols=80,
            file=self.file,
        )

    def update_step(self, step_name: str):
        """Show the name of the step being worked on."""
        if self.bar:
            self.bar.set_description(f"{self.desc} - {step_name}")

    def advance(self, steps: int = 1):
        """Advance the progress by one or more steps."""
        self.current_step += steps
        if self.bar:
            self.bar.update(steps)

    def finish(self):
        """Close the progress bar."""
        if self.bar:
            self.bar.close()
            self.bar = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False


class SimpleProgressTracker:
    """
    Progress tracker that prints nothing.

    Used with --quiet, machine-readable output formats, and in tests.
    """

    def __init__(self, total_steps: int = 0, desc: str = "Workflow", initial: int = 0, file=None):
        self.current_step = initial

    def start(self):
        pass

    def update_step(self, step_name: str):
        pass

    def advance(self, steps: int = 1):
        self.current_step += steps

    def finish(self):
        pass

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False


def create_progress_tracker(total_steps: int, desc: str = "Workflow",
                            enabled: bool = True, initial: int = 0):
    """
    Factory function to create appropriate progress tracker.

    Args:
        total_steps: Total number of steps
        desc: Description of the run
        enabled: Whether to show progress at all
        initial: Steps already completed

    Returns:
        ProgressTracker or SimpleProgressTracker instance
    """
    if not enabled:
        return SimpleProgressTracker(total_steps, desc, initial)
    return ProgressTracker(total_steps, desc, initial)
