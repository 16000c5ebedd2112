"""
Transfer Module - File payload over UDP

The shared server endpoint, the paced file sender and the client receiver.
"""

from .channel import DataChannel, open_data_channel
from .sender import (
    CHUNK_BYTES, FileSender, TransferDescriptor, TransferResult, encode_size,
)
from .receiver import (
    DatagramReceiver, ReceiveResult, open_receiver, parse_size, receive_file,
)

__all__ = [
    'DataChannel',
    'open_data_channel',
    'CHUNK_BYTES',
    'FileSender',
    'TransferDescriptor',
    'TransferResult',
    'encode_size',
    'DatagramReceiver',
    'ReceiveResult',
    'open_receiver',
    'parse_size',
    'receive_file',
]
