"""Test support utilities for the agenda package.

All public symbols are free of pytest fixtures so they can be imported from
any test context.
"""

from agenda.testing.memory_store import InMemoryCalendarStore

__all__ = ["InMemoryCalendarStore"]
