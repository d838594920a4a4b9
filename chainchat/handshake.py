"""
Key and nonce exchange.

Server                                    Client
  CA <e_CA> <n_CA>                  ->
  PUBLIC_KEY <e_S^d_CA> <n_S^d_CA>  ->      (recover e_S, n_S with e_CA)
                                    <-    ACK 226
                                    <-    NONCE <nonce^e_S mod n_S>
  ACK 220                           ->
  READY                                   READY

ServerHandshake / ClientHandshake are pure state machines: they take
parsed records and return the records to send back. The run_* drivers
wire them to a LineChannel.
"""

import random
from enum import Enum
from typing import List, Optional

from pydantic import ValidationError

from chainchat.common.errors import HandshakeError
from chainchat.common.protocol import (
    ACK_NONCE,
    ACK_PUBLIC_KEY,
    AckRecord,
    CaKeyRecord,
    NonceRecord,
    PublicKeyRecord,
    Record,
)
from chainchat.common.transport import LineChannel
from chainchat.crypto.cipher import generate_nonce, open_nonce, seal_nonce
from chainchat.crypto.keys import KeyPair
from chainchat.crypto.numtheory import mod_pow


class HandshakeState(Enum):
    IDLE = "idle"
    AWAIT_CA_KEY = "await_ca_key"
    AWAIT_SERVER_KEY = "await_server_key"
    SEND_ACK_AND_NONCE = "send_ack_and_nonce"
    AWAIT_CLIENT_ACK = "await_client_ack"
    AWAIT_NONCE = "await_nonce"
    AWAIT_NONCE_ACK = "await_nonce_ack"
    READY = "ready"


class HandshakeSession:
    """
    Per-connection handshake result.

    server_key is the server's key as this side knows it: the full pair
    on the server, the CA-verified public part on the client.
    """

    def __init__(self, state: HandshakeState):
        self.state = state
        self.ca_key: Optional[KeyPair] = None
        self.server_key: Optional[KeyPair] = None
        self.nonce: Optional[int] = None

    @property
    def ready(self) -> bool:
        return self.state is HandshakeState.READY


def _unexpected(session: HandshakeSession, record: Record) -> HandshakeError:
    return HandshakeError(
        f"Unexpected {record.type} record in state {session.state.value}"
    )


def _public_key(e: int, n: int, what: str) -> KeyPair:
    try:
        return KeyPair(e=e, n=n)
    except ValidationError as err:
        raise HandshakeError(f"Invalid {what} ({e}, {n})") from err


# ------------- Server side -------------


class ServerHandshake:
    def __init__(self, ca_keys: KeyPair, server_keys: KeyPair):
        if ca_keys.d is None or server_keys.d is None:
            raise ValueError("Server handshake needs both private exponents")
        if ca_keys.n <= server_keys.n:
            raise ValueError("CA modulus must exceed the server modulus")

        self.ca_keys = ca_keys
        self.server_keys = server_keys
        self.session = HandshakeSession(HandshakeState.IDLE)
        self.session.ca_key = ca_keys.public()
        self.session.server_key = server_keys

    def signed_public_key(self) -> PublicKeyRecord:
        """Server (e, n) raised to the CA private exponent."""
        ca = self.ca_keys
        return PublicKeyRecord(
            e=mod_pow(self.server_keys.e, ca.d, ca.n),
            n=mod_pow(self.server_keys.n, ca.d, ca.n),
        )

    def start(self) -> List[Record]:
        """Opening records for a freshly accepted connection."""
        if self.session.state is not HandshakeState.IDLE:
            raise HandshakeError("Handshake already started")

        self.session.state = HandshakeState.AWAIT_CLIENT_ACK
        return [
            CaKeyRecord(e=self.ca_keys.e, n=self.ca_keys.n),
            self.signed_public_key(),
        ]

    def receive(self, record: Record) -> List[Record]:
        session = self.session

        if session.state is HandshakeState.AWAIT_CLIENT_ACK:
            if not isinstance(record, AckRecord):
                raise _unexpected(session, record)
            if record.code != ACK_PUBLIC_KEY:
                raise HandshakeError(
                    f"Expected ACK {ACK_PUBLIC_KEY} for the public key, got ACK {record.code}"
                )
            session.state = HandshakeState.AWAIT_NONCE
            return []

        if session.state is HandshakeState.AWAIT_NONCE:
            if not isinstance(record, NonceRecord):
                raise _unexpected(session, record)
            session.nonce = open_nonce(record.value, self.server_keys)
            session.state = HandshakeState.READY
            return [AckRecord(code=ACK_NONCE)]

        raise _unexpected(session, record)


# ------------- Client side -------------


class ClientHandshake:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng
        self.session = HandshakeSession(HandshakeState.AWAIT_CA_KEY)

    def receive(self, record: Record) -> List[Record]:
        session = self.session

        if session.state is HandshakeState.AWAIT_CA_KEY:
            if not isinstance(record, CaKeyRecord):
                raise _unexpected(session, record)
            # Trusted as received
            session.ca_key = _public_key(record.e, record.n, "CA key")
            session.state = HandshakeState.AWAIT_SERVER_KEY
            return []

        if session.state is HandshakeState.AWAIT_SERVER_KEY:
            if not isinstance(record, PublicKeyRecord):
                raise _unexpected(session, record)
            ca = session.ca_key
            session.server_key = _public_key(
                mod_pow(record.e, ca.e, ca.n),
                mod_pow(record.n, ca.e, ca.n),
                "server public key",
            )
            session.state = HandshakeState.SEND_ACK_AND_NONCE
            return self._ack_and_nonce()

        if session.state is HandshakeState.AWAIT_NONCE_ACK:
            if not isinstance(record, AckRecord):
                raise _unexpected(session, record)
            if record.code != ACK_NONCE:
                raise HandshakeError(
                    f"Expected ACK {ACK_NONCE} for the nonce, got ACK {record.code}"
                )
            session.state = HandshakeState.READY
            return []

        raise _unexpected(session, record)

    def _ack_and_nonce(self) -> List[Record]:
        session = self.session
        nonce = generate_nonce(self.rng)
        try:
            sealed = seal_nonce(nonce, session.server_key)
        except ValueError as e:
            raise HandshakeError(f"Cannot encrypt nonce: {e}") from e

        session.nonce = nonce
        session.state = HandshakeState.AWAIT_NONCE_ACK
        return [AckRecord(code=ACK_PUBLIC_KEY), NonceRecord(value=sealed)]


# ------------- Drivers -------------


def run_server_handshake(
    channel: LineChannel,
    ca_keys: KeyPair,
    server_keys: KeyPair,
    verbose: bool = False,
) -> HandshakeSession:
    """
    Send the CA key and signed server key, then block for
    ACK 226 and NONCE, answering ACK 220.
    """
    handshake = ServerHandshake(ca_keys, server_keys)

    ca_record, key_record = handshake.start()
    channel.send_record(ca_record)
    print(f"[HANDSHAKE] Sent CA public key: ({ca_keys.e}, {ca_keys.n})")
    channel.send_record(key_record)
    print(f"[HANDSHAKE] Sent signed server key: {key_record.encode()}")

    while not handshake.session.ready:
        record = channel.recv_record()
        if verbose:
            print(f"[HANDSHAKE] <- {record.encode()}")
        for reply in handshake.receive(record):
            channel.send_record(reply)

    print(f"[HANDSHAKE] Nonce received and acknowledged (nonce={handshake.session.nonce})")
    return handshake.session


def run_client_handshake(
    channel: LineChannel,
    rng: Optional[random.Random] = None,
    verbose: bool = False,
) -> HandshakeSession:
    """
    Block for the CA key and signed server key, answer with
    ACK 226 and the sealed nonce, then block for ACK 220.
    """
    handshake = ClientHandshake(rng=rng)
    session = handshake.session

    while not session.ready:
        record = channel.recv_record()
        if verbose:
            print(f"[HANDSHAKE] <- {record.encode()}")
        for reply in handshake.receive(record):
            channel.send_record(reply)

        if session.state is HandshakeState.AWAIT_SERVER_KEY:
            print(f"[HANDSHAKE] CA public key: ({session.ca_key.e}, {session.ca_key.n})")
        elif session.state is HandshakeState.AWAIT_NONCE_ACK:
            print(f"[HANDSHAKE] Server public key: ({session.server_key.e}, {session.server_key.n})")
            print(f"[HANDSHAKE] Sent ACK {ACK_PUBLIC_KEY} and encrypted nonce")

    print(f"[HANDSHAKE] Server acknowledged nonce (ACK {ACK_NONCE})")
    return session
