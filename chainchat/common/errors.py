"""Failure classes shared by the client and server."""


class TransportError(ConnectionError):
    """The byte stream failed: peer closed, socket error or timeout."""


class ProtocolError(ValueError):
    """A record could not be parsed or arrived out of order."""


class HandshakeError(ProtocolError):
    """The key / nonce exchange did not follow the expected sequence."""


class ChainDesyncError(ProtocolError):
    """A decrypted character fell outside 8 bits: the nonce chains diverged."""
