"""
Branch Rescue - deleted branch tracking and restoration for git working copies.

This package records branches deleted through it, discovers older deletions
in the reflog, previews restores before recreating a branch, and moves the
deletion history between machines.
"""

__version__ = "0.1.0"

from branch_rescue.config import Config, load_config

__all__ = [
    "__version__",
    "Config",
    "load_config",
]
