from .rooms import rooms_bp

__all__ = ["rooms_bp"]
