from . import youtube

__all__ = ["youtube"]
