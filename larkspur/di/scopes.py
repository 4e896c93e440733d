"""
Lifetime definitions.
"""

from enum import Enum


class Lifetime(str, Enum):
    """Service lifetimes."""

    SINGLETON = "singleton"  # One instance per container lifecycle
    SCOPED = "scoped"        # One instance per resolution pass (request)
