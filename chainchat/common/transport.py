"""
Line framing over a connected stream socket.

Reads one byte at a time until LF (CR bytes are dropped), so nothing
past the current record is ever consumed from the socket.
"""

import socket
from typing import Optional

from chainchat.common.errors import ProtocolError, TransportError
from chainchat.common.protocol import Record, parse_record

MAX_LINE_BYTES = 256


class LineChannel:
    """Blocking record I/O on one socket."""

    def __init__(self, sock: socket.socket, timeout: Optional[float] = None):
        self.sock = sock
        if timeout is not None:
            self.sock.settimeout(timeout)

    # ------------- Sending -------------

    def send_line(self, text: str) -> None:
        """Send text followed by LF."""
        try:
            data = (text + "\n").encode("ascii")
        except UnicodeEncodeError as e:
            raise ProtocolError(f"Record is not ASCII: {text!r}") from e

        try:
            self.sock.sendall(data)
        except OSError as e:
            raise TransportError(f"Send failed: {e}") from e

    def send_record(self, record: Record) -> None:
        self.send_line(record.encode())

    # ------------- Receiving -------------

    def recv_line(self) -> str:
        """
        Block until a full LF-terminated line arrives.

        :return: the line without CR/LF
        :raises TransportError: peer closed, socket error or timeout
        """
        buf = bytearray()
        while True:
            try:
                byte = self.sock.recv(1)
            except socket.timeout as e:
                raise TransportError("Timed out waiting for peer") from e
            except OSError as e:
                raise TransportError(f"Receive failed: {e}") from e

            if not byte:
                raise TransportError("Connection closed by peer")
            if byte == b"\n":
                break
            if byte == b"\r":
                continue

            buf += byte
            if len(buf) > MAX_LINE_BYTES:
                raise ProtocolError(f"Record longer than {MAX_LINE_BYTES} bytes")

        try:
            return buf.decode("ascii")
        except UnicodeDecodeError as e:
            raise ProtocolError("Record is not ASCII") from e

    def recv_record(self) -> Record:
        return parse_record(self.recv_line())

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError:
            # already disconnected
            pass
        self.sock.close()
