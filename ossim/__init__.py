"""
OS simulator package.

A pedagogical kernel model: a round-robin scheduler, context switching
against a simulated CPU, and a contiguous memory allocator with a free list.
"""

from .kernel import OperatingSystem
from .models import Program

__all__ = ["OperatingSystem", "Program", "cli"]
