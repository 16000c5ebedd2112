"""
Exception types shared across the server and the client.
"""


class DirShareError(Exception):
    """Base class for all dirshare errors."""


class ConfigError(DirShareError):
    """Invalid configuration (bad root, bad ports, bad sizes)."""


class DatagramSendError(DirShareError):
    """A datagram could not be handed to the data channel."""


class ProtocolError(DirShareError):
    """The peer violated the control or data channel format."""
