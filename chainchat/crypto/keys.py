"""
CA and server key pairs.

Both are derived the same way from two distinct primes; the CA modulus
must end up larger than the server modulus because the CA private
exponent signs the server's (e, n), and a signed value only survives
the round trip when it is smaller than the signing modulus.
"""

import random
from typing import Callable, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from pydantic import BaseModel, ConfigDict, Field, model_validator

from chainchat.common.utils import int_to_bytes
from chainchat.crypto.numtheory import (
    generate_prime,
    is_coprime,
    mod_inverse,
)

PRIME_LOW = 5000
PRIME_HIGH = 15000

E_SEED_LOW = 5000
E_SEED_HIGH = 10000

_default_rng = random.SystemRandom()

PrimeSource = Callable[[], int]


class KeyPair(BaseModel):
    """
    RSA-style key: public exponent e, modulus n, private exponent d.

    d is only present on the side that owns the key.
    """

    model_config = ConfigDict(frozen=True)

    e: int = Field(gt=0)
    n: int = Field(gt=1)
    d: Optional[int] = Field(default=None, gt=0)

    @property
    def is_private(self) -> bool:
        return self.d is not None

    def public(self) -> "KeyPair":
        """Copy of this key without the private exponent."""
        return KeyPair(e=self.e, n=self.n)

    def fingerprint(self) -> str:
        """SHA-256 over big-endian(e) || big-endian(n), hex encoded."""
        digest = hashes.Hash(hashes.SHA256())
        digest.update(int_to_bytes(self.e))
        digest.update(int_to_bytes(self.n))
        return digest.finalize().hex()


class KeyBundle(BaseModel):
    """The CA and server keys a server process runs with."""

    model_config = ConfigDict(frozen=True)

    ca: KeyPair
    server: KeyPair

    @model_validator(mode="after")
    def check_ordering(self) -> "KeyBundle":
        if not (self.ca.is_private and self.server.is_private):
            raise ValueError("Key bundle needs private exponents for CA and server")
        if self.ca.n <= self.server.n:
            raise ValueError(
                f"CA modulus {self.ca.n} must exceed server modulus {self.server.n}"
            )
        return self


# ------------- Derivation -------------


def choose_public_exponent(p: int, q: int, z: int, start: int) -> int:
    """
    First e >= start that is not p or q and is coprime with z.

    The search is bounded by z; running off the end means the key
    parameters are broken, so it is not retried.
    """
    if start < 2:
        raise ValueError("Public exponent search must start at 2 or above")

    e = start
    while e < z:
        if e != p and e != q and is_coprime(e, z):
            return e
        e += 1

    raise RuntimeError(f"No public exponent in [{start}, {z}) is coprime with {z}")


def derive_key_pair(
    p: int,
    q: int,
    e_start: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> KeyPair:
    """
    n = p*q, z = (p-1)(q-1), e coprime with z, d = e^-1 mod z.

    :param p: first prime
    :param q: second prime, distinct from p
    :param e_start: where the exponent search begins (random when omitted)
    :param rng: random source for the exponent seed
    """
    if p == q:
        raise ValueError("p and q must be distinct")

    n = p * q
    z = (p - 1) * (q - 1)

    if e_start is None:
        e_start = (rng or _default_rng).randint(E_SEED_LOW, E_SEED_HIGH)

    e = choose_public_exponent(p, q, z, e_start)
    d = mod_inverse(e, z)
    return KeyPair(e=e, d=d, n=n)


def _prime_source(rng: Optional[random.Random], prime_source: Optional[PrimeSource]) -> PrimeSource:
    if prime_source is not None:
        return prime_source
    return lambda: generate_prime(PRIME_LOW, PRIME_HIGH, rng)


def pick_distinct_primes(next_prime: PrimeSource) -> Tuple[int, int]:
    """Draw p and q, redrawing q while it equals p."""
    p = next_prime()
    q = next_prime()
    while p == q:
        q = next_prime()
    return p, q


# ------------- Generators -------------


def generate_server_keys(
    rng: Optional[random.Random] = None,
    prime_source: Optional[PrimeSource] = None,
) -> KeyPair:
    """Fresh server key pair from two random primes in [PRIME_LOW, PRIME_HIGH]."""
    p, q = pick_distinct_primes(_prime_source(rng, prime_source))
    return derive_key_pair(p, q, rng=rng)


def generate_ca_keys(
    n_server_bound: int,
    rng: Optional[random.Random] = None,
    prime_source: Optional[PrimeSource] = None,
) -> KeyPair:
    """
    CA key pair whose modulus is strictly greater than n_server_bound.

    Prime pairs are redrawn until p*q clears the bound.
    """
    next_prime = _prime_source(rng, prime_source)

    p, q = pick_distinct_primes(next_prime)
    while p * q <= n_server_bound:
        p, q = pick_distinct_primes(next_prime)

    return derive_key_pair(p, q, rng=rng)


def generate_key_bundle(rng: Optional[random.Random] = None) -> KeyBundle:
    """Server keys first, then CA keys bounded by the server modulus."""
    server = generate_server_keys(rng=rng)
    ca = generate_ca_keys(server.n, rng=rng)
    return KeyBundle(ca=ca, server=server)
