"""
ibc: on-chain protocol core for verified inter-chain communication.

Light-client abstraction, connection and channel handshakes, and the
packet lifecycle, all driven through a HostContext supplied by the
embedding chain.
"""

__version__ = "0.1.0"
