"""Room synchronization engine: presence, queue, votes, playback, auto-fill and lifecycle."""

from . import autofill, coordinator, playback, presence, queue_store, session, votes

__all__ = [
    "autofill",
    "coordinator",
    "playback",
    "presence",
    "queue_store",
    "session",
    "votes",
]
