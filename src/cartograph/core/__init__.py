"""Core primitives shared by the tasks and the command line front end."""

from .async_utils import gather_limited, run_sync

__all__ = ["gather_limited", "run_sync"]
