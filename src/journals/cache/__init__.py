"""Journal cache.

Holds the current set of open journal issues and their comments and
publishes an ADDED / MODIFIED / DELETED event for every mutation.
"""

from src.journals.cache.journal import JournalCache

__all__ = ["JournalCache"]
