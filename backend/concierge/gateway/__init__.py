"""Gateway module - message routing, per-session turn queue and observers."""

from .gateway import Gateway, Turn, ADMIN_CHANNEL, APOLOGY, log_turn_failure
from .turn_queue import SessionTurnQueue

__all__ = ['Gateway', 'Turn', 'ADMIN_CHANNEL', 'APOLOGY', 'SessionTurnQueue', 'log_turn_failure']
