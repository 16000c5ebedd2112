"""
Session Module - Control channel framing and the per-client state machine
"""

from .protocol import ControlChannel, Command, greeting, parse_command
from .handler import Session, SessionState

__all__ = [
    'ControlChannel',
    'Command',
    'greeting',
    'parse_command',
    'Session',
    'SessionState',
]
