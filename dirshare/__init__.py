"""
dirshare - remote directory browsing over TCP, file payload over UDP.
"""

__version__ = "0.1.0"
