import pytest

from chainchat.common.errors import ProtocolError
from chainchat.common.protocol import (
    ACK_NONCE,
    ACK_PUBLIC_KEY,
    AckRecord,
    CaKeyRecord,
    CipherCharRecord,
    EndOfMessageRecord,
    NonceRecord,
    PublicKeyRecord,
    parse_record,
)


def test_parse_keyword_records():
    assert parse_record("CA 5003 99400891") == CaKeyRecord(e=5003, n=99400891)
    assert parse_record("PUBLIC_KEY 12 34") == PublicKeyRecord(e=12, n=34)
    assert parse_record("ACK 226") == AckRecord(code=ACK_PUBLIC_KEY)
    assert parse_record("NONCE 777") == NonceRecord(value=777)


def test_parse_cipher_char_and_end_of_message():
    assert parse_record("2790") == CipherCharRecord(value=2790)
    assert parse_record("") == EndOfMessageRecord()
    assert parse_record("\r\n") == EndOfMessageRecord()


def test_carriage_return_is_ignored():
    assert parse_record("ACK 220\r\n") == AckRecord(code=ACK_NONCE)
    assert parse_record("AC\rK 220") == AckRecord(code=ACK_NONCE)


def test_encode_matches_wire_format():
    assert CaKeyRecord(e=1, n=2).encode() == "CA 1 2"
    assert PublicKeyRecord(e=3, n=4).encode() == "PUBLIC_KEY 3 4"
    assert AckRecord(code=226).encode() == "ACK 226"
    assert NonceRecord(value=5).encode() == "NONCE 5"
    assert CipherCharRecord(value=2790).encode() == "2790"
    assert EndOfMessageRecord().encode() == ""


@pytest.mark.parametrize(
    "line",
    [
        "CA 123",
        "CA 1 2 3",
        "PUBLIC_KEY 5",
        "ACK",
        "ACK abc",
        "NONCE",
        "NONCE -4",
        "-5",
        "12 13",
        "HELLO 1",
        "ca 1 2",
    ],
)
def test_malformed_records_are_protocol_errors(line):
    with pytest.raises(ProtocolError):
        parse_record(line)


def test_diagnostic_names_the_record():
    with pytest.raises(ProtocolError, match="CA record needs 2"):
        parse_record("CA 123")
