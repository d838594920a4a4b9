import random
import threading

import pytest

from chainchat.common.errors import HandshakeError, ProtocolError, TransportError
from chainchat.common.protocol import (
    AckRecord,
    CaKeyRecord,
    NonceRecord,
    PublicKeyRecord,
)
from chainchat.common.transport import LineChannel
from chainchat.crypto.numtheory import mod_pow
from chainchat.handshake import (
    ClientHandshake,
    HandshakeState,
    ServerHandshake,
    run_client_handshake,
    run_server_handshake,
)
from chainchat.server import handle_client


def _exchange(server, client):
    """Pump records between the two state machines until both are done."""
    to_client = server.start()
    to_server = []
    while to_client or to_server:
        for record in to_client:
            to_server.extend(client.receive(record))
        to_client = []
        for record in to_server:
            to_client.extend(server.receive(record))
        to_server = []


def test_full_handshake_in_memory(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    client = ClientHandshake(rng=random.Random(4))

    _exchange(server, client)

    assert server.session.ready and client.session.ready
    assert client.session.server_key == bundle.server.public()
    assert client.session.ca_key == bundle.ca.public()
    assert client.session.nonce == server.session.nonce


def test_opening_records(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    ca_record, key_record = server.start()

    assert ca_record == CaKeyRecord(e=bundle.ca.e, n=bundle.ca.n)
    assert key_record.e == mod_pow(bundle.server.e, bundle.ca.d, bundle.ca.n)
    assert key_record.n == mod_pow(bundle.server.n, bundle.ca.d, bundle.ca.n)
    assert server.session.state is HandshakeState.AWAIT_CLIENT_ACK


def test_certificate_round_trip(bundle):
    ca = bundle.ca
    for value in (2, bundle.server.e, bundle.server.n, ca.n - 1):
        assert mod_pow(mod_pow(value, ca.d, ca.n), ca.e, ca.n) == value


def test_client_replies_ack_then_nonce(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    client = ClientHandshake(rng=random.Random(4))
    ca_record, key_record = server.start()

    assert client.receive(ca_record) == []
    assert client.session.state is HandshakeState.AWAIT_SERVER_KEY

    ack, nonce = client.receive(key_record)
    assert ack == AckRecord(code=226)
    assert isinstance(nonce, NonceRecord)
    assert nonce.value == mod_pow(client.session.nonce, bundle.server.e, bundle.server.n)
    assert client.session.state is HandshakeState.AWAIT_NONCE_ACK


def test_server_nonce_is_not_xored(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    server.start()
    server.receive(AckRecord(code=226))
    sealed = mod_pow(3210, bundle.server.e, bundle.server.n)

    assert server.receive(NonceRecord(value=sealed)) == [AckRecord(code=220)]
    assert server.session.nonce == 3210
    assert server.session.ready


def test_server_rejects_wrong_ack(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    server.start()
    with pytest.raises(HandshakeError):
        server.receive(AckRecord(code=999))


def test_server_rejects_nonce_before_ack(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    server.start()
    with pytest.raises(HandshakeError):
        server.receive(NonceRecord(value=1))


def test_server_rejects_records_before_start(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    with pytest.raises(HandshakeError):
        server.receive(AckRecord(code=226))


def test_server_requires_larger_ca_modulus(bundle):
    with pytest.raises(ValueError):
        ServerHandshake(bundle.server, bundle.ca)


def test_client_rejects_public_key_before_ca():
    client = ClientHandshake()
    with pytest.raises(HandshakeError):
        client.receive(PublicKeyRecord(e=1, n=2))


def test_client_rejects_wrong_nonce_ack(bundle):
    server = ServerHandshake(bundle.ca, bundle.server)
    client = ClientHandshake(rng=random.Random(4))
    for record in server.start():
        client.receive(record)
    with pytest.raises(HandshakeError):
        client.receive(AckRecord(code=221))


def test_client_rejects_degenerate_ca_key():
    client = ClientHandshake()
    with pytest.raises(HandshakeError):
        client.receive(CaKeyRecord(e=0, n=0))


# ------------- Over sockets -------------


def test_handshake_over_socket(bundle, sock_pair):
    a, b = sock_pair
    result = {}

    def serve():
        result["server"] = run_server_handshake(LineChannel(a), bundle.ca, bundle.server)

    t = threading.Thread(target=serve)
    t.start()
    client_session = run_client_handshake(LineChannel(b), rng=random.Random(9))
    t.join(timeout=5)

    assert result["server"].ready and client_session.ready
    assert result["server"].nonce == client_session.nonce
    assert client_session.server_key == bundle.server.public()


def test_malformed_ca_record_aborts_client(sock_pair):
    a, b = sock_pair
    a.sendall(b"CA 123\n")
    with pytest.raises(ProtocolError, match="CA record"):
        run_client_handshake(LineChannel(b))


def test_bad_ack_aborts_only_the_session(bundle, config, sock_pair, capsys):
    server_sock, client_sock = sock_pair
    client_sock.sendall(b"ACK 999\n")

    handle_client(server_sock, ("test", 0), bundle, config)

    client = LineChannel(client_sock)
    assert client.recv_line().startswith("CA ")
    assert client.recv_line().startswith("PUBLIC_KEY ")
    with pytest.raises(TransportError):
        client.recv_line()
    assert "[ERROR]" in capsys.readouterr().out
