"""
Pydantic record models for the chainchat wire protocol.

One record per LF-terminated ASCII line. These are the ONLY structures
exchanged between client and server; every incoming line is parsed into
one of them before the handshake or message loop looks at it.
"""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from chainchat.common.errors import ProtocolError

ACK_PUBLIC_KEY = 226   # client -> server, signed public key received
ACK_NONCE = 220        # server -> client, nonce received


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


# -------------------------
# Handshake
# -------------------------

class CaKeyRecord(_Record):
    type: Literal["ca_key"] = "ca_key"
    e: int = Field(ge=0)
    n: int = Field(ge=0)

    def encode(self) -> str:
        return f"CA {self.e} {self.n}"


class PublicKeyRecord(_Record):
    type: Literal["public_key"] = "public_key"
    e: int = Field(ge=0)   # e_server^d_CA mod n_CA
    n: int = Field(ge=0)   # n_server^d_CA mod n_CA

    def encode(self) -> str:
        return f"PUBLIC_KEY {self.e} {self.n}"


class AckRecord(_Record):
    type: Literal["ack"] = "ack"
    code: int = Field(ge=0)

    def encode(self) -> str:
        return f"ACK {self.code}"


class NonceRecord(_Record):
    type: Literal["nonce"] = "nonce"
    value: int = Field(ge=0)   # nonce^e_server mod n_server

    def encode(self) -> str:
        return f"NONCE {self.value}"


# -------------------------
# Message stream
# -------------------------

class CipherCharRecord(_Record):
    type: Literal["cipher_char"] = "cipher_char"
    value: int = Field(ge=0)

    def encode(self) -> str:
        return str(self.value)


class EndOfMessageRecord(_Record):
    type: Literal["end_of_message"] = "end_of_message"

    def encode(self) -> str:
        return ""


Record = Union[
    CaKeyRecord,
    PublicKeyRecord,
    AckRecord,
    NonceRecord,
    CipherCharRecord,
    EndOfMessageRecord,
]

# keyword -> (model, argument names)
_KEYWORDS = {
    "CA": (CaKeyRecord, ("e", "n")),
    "PUBLIC_KEY": (PublicKeyRecord, ("e", "n")),
    "ACK": (AckRecord, ("code",)),
    "NONCE": (NonceRecord, ("value",)),
}


def _parse_int(token: str, line: str) -> int:
    if not token.isdigit():
        raise ProtocolError(f"Expected a non-negative integer, got {token!r} in {line!r}")
    return int(token)


def parse_record(line: str) -> Record:
    """
    Parse one wire line (terminator optional) into a record.

    Raises ProtocolError for unknown keywords, wrong argument counts
    and non-integer arguments.
    """
    text = line.replace("\r", "").rstrip("\n")
    tokens = text.split()

    if not tokens:
        return EndOfMessageRecord()

    keyword, args = tokens[0], tokens[1:]

    if keyword in _KEYWORDS:
        model, names = _KEYWORDS[keyword]
        if len(args) != len(names):
            raise ProtocolError(
                f"{keyword} record needs {len(names)} integer(s), got {len(args)}: {text!r}"
            )
        values = {name: _parse_int(tok, text) for name, tok in zip(names, args)}
        return model(**values)

    if len(tokens) == 1:
        return CipherCharRecord(value=_parse_int(keyword, text))

    raise ProtocolError(f"Unrecognised record: {text!r}")
