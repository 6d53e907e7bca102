from .api import rooms_bp
from .ws import register_socket_handlers, start_background_tasks_if_needed

__all__ = ["rooms_bp", "register_socket_handlers", "start_background_tasks_if_needed"]
