"""
Message framing on top of the chained cipher.

Outbound, a typed line is split on whitespace; every character of every
word becomes one ciphertext record, one extra encrypted space goes
between words, and an empty record closes the message. Inbound, the
records are decrypted back into text until that empty record arrives.
"""

from typing import List, Optional

from chainchat.common.errors import ProtocolError
from chainchat.common.protocol import (
    CipherCharRecord,
    EndOfMessageRecord,
    Record,
)
from chainchat.common.transport import LineChannel
from chainchat.crypto.cipher import ChainCipher

TERMINATOR = "."


def is_terminator(text: str) -> bool:
    """A line holding only '.' ends the client's session."""
    return text.strip() == TERMINATOR


def _render(ciphertext: List[int]) -> str:
    return " ".join(str(value) for value in ciphertext)


class OutgoingMessage:
    def __init__(self, plaintext: str, ciphertext: List[int], records: List[Record]):
        self.plaintext = plaintext
        self.ciphertext = ciphertext
        self.records = records

    @property
    def ciphertext_text(self) -> str:
        return _render(self.ciphertext)


class ReceivedMessage:
    def __init__(self, plaintext: str, ciphertext: List[int]):
        self.plaintext = plaintext
        self.ciphertext = ciphertext

    @property
    def ciphertext_text(self) -> str:
        return _render(self.ciphertext)


def frame_message(text: str, cipher: ChainCipher) -> OutgoingMessage:
    """
    Encrypt text into its record sequence, advancing the cipher's nonce.

    :param text: one line of user input
    :param cipher: sender-side cipher (server public key + nonce)
    """
    records: List[Record] = []
    ciphertext: List[int] = []
    words = text.split()

    for index, word in enumerate(words):
        if index > 0:
            # word boundary survives as an encrypted space
            word = " " + word
        for ch in word:
            value = cipher.encrypt(ch)
            ciphertext.append(value)
            records.append(CipherCharRecord(value=value))

    records.append(EndOfMessageRecord())
    return OutgoingMessage(" ".join(words), ciphertext, records)


class MessageSender:
    def __init__(self, channel: LineChannel, cipher: ChainCipher, verbose: bool = False):
        self.channel = channel
        self.cipher = cipher
        self.verbose = verbose

    def send(self, text: str) -> OutgoingMessage:
        message = frame_message(text, self.cipher)
        plain_chars = iter(message.plaintext)

        for record in message.records:
            self.channel.send_record(record)
            if self.verbose and isinstance(record, CipherCharRecord):
                print(f"[CHAT] -> {next(plain_chars)!r} as {record.value}")

        return message


class MessageReceiver:
    """Accumulates decrypted characters until the end-of-message record."""

    def __init__(self, cipher: ChainCipher, verbose: bool = False):
        self.cipher = cipher
        self.verbose = verbose
        self._plaintext: List[str] = []
        self._ciphertext: List[int] = []

    @property
    def pending(self) -> str:
        """Characters received since the last end-of-message record."""
        return "".join(self._plaintext)

    def feed(self, record: Record) -> Optional[ReceivedMessage]:
        """
        Consume one record.

        :return: the finished message on end-of-message, otherwise None
        """
        if isinstance(record, CipherCharRecord):
            ch = self.cipher.decrypt(record.value)
            if self.verbose:
                print(f"[CHAT] <- {record.value} decrypted to {ch!r}")
            self._plaintext.append(ch)
            self._ciphertext.append(record.value)
            return None

        if isinstance(record, EndOfMessageRecord):
            message = ReceivedMessage("".join(self._plaintext), self._ciphertext)
            self._plaintext = []
            self._ciphertext = []
            return message

        raise ProtocolError(f"Unexpected {record.type} record during message exchange")
