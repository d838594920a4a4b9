"""
Nonce-chained character cipher.

Each character is XORed with the current nonce and then raised to the
key's exponent. The ciphertext becomes the next nonce on both ends:

* sender:   nonce := ciphertext it just produced
* receiver: nonce := ciphertext it just received (not the decrypted value)

The initial nonce travels once, plain RSA with no XOR.
"""

import random
from typing import Optional

from chainchat.common.errors import ChainDesyncError
from chainchat.crypto.keys import KeyPair
from chainchat.crypto.numtheory import mod_pow

NONCE_LOW = 1000
NONCE_HIGH = 5000

CHAR_MAX = 0xFF

_default_rng = random.SystemRandom()


def _require_private(key: KeyPair) -> int:
    if key.d is None:
        raise ValueError("Decryption needs a key with a private exponent")
    return key.d


def encrypt_char(plain_char: str, nonce: int, public_key: KeyPair) -> int:
    """
    c = (ascii(plain_char) XOR nonce)^e mod n.

    The caller's nonce must become the returned value.
    """
    code = ord(plain_char)
    if code > CHAR_MAX:
        raise ValueError(f"Character {plain_char!r} does not fit in 8 bits")

    masked = code ^ nonce
    if masked >= public_key.n:
        raise ValueError(
            f"Masked value {masked} does not fit modulus {public_key.n}"
        )
    return mod_pow(masked, public_key.e, public_key.n)


def decrypt_char(cipher_value: int, nonce: int, private_key: KeyPair) -> str:
    """
    ascii = (c^d mod n) XOR nonce.

    The caller's nonce must become cipher_value.
    """
    d = _require_private(private_key)
    masked = mod_pow(cipher_value, d, private_key.n)
    code = masked ^ nonce
    if code > CHAR_MAX:
        raise ChainDesyncError(
            f"Ciphertext {cipher_value} decrypted to {code}; nonce chain out of sync"
        )
    return chr(code)


class ChainCipher:
    """
    One direction of the character stream: a key plus the evolving nonce.

    The sender holds the peer's public key, the receiver its own key pair.
    """

    def __init__(self, key: KeyPair, nonce: int):
        self.key = key
        self.nonce = nonce

    def encrypt(self, plain_char: str) -> int:
        cipher_value = encrypt_char(plain_char, self.nonce, self.key)
        self.nonce = cipher_value
        return cipher_value

    def decrypt(self, cipher_value: int) -> str:
        plain_char = decrypt_char(cipher_value, self.nonce, self.key)
        self.nonce = cipher_value
        return plain_char


# ------------- Nonce exchange -------------


def generate_nonce(rng: Optional[random.Random] = None) -> int:
    """Fresh session nonce in [NONCE_LOW, NONCE_HIGH]."""
    return (rng or _default_rng).randint(NONCE_LOW, NONCE_HIGH)


def seal_nonce(nonce: int, public_key: KeyPair) -> int:
    """Plain RSA on the nonce: nonce^e mod n."""
    if not 0 <= nonce < public_key.n:
        raise ValueError(f"Nonce {nonce} must lie in [0, {public_key.n})")
    return mod_pow(nonce, public_key.e, public_key.n)


def open_nonce(sealed: int, private_key: KeyPair) -> int:
    """Inverse of seal_nonce with the private exponent."""
    return mod_pow(sealed, _require_private(private_key), private_key.n)
