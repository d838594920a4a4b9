"""
Integer helpers behind the toy RSA keys:
primality, prime sampling, square-and-multiply, coprimality and
the extended Euclidean inverse.
"""

import math
import random
from typing import Optional

_default_rng = random.SystemRandom()


def is_prime(x: int) -> bool:
    """Trial division up to floor(sqrt(x))."""
    if x <= 1:
        return False
    if x <= 3:
        return True

    for i in range(2, math.isqrt(x) + 1):
        if x % i == 0:
            return False
    return True


def generate_prime(lo: int, hi: int, rng: Optional[random.Random] = None) -> int:
    """
    Draw uniformly from [lo, hi] until a prime comes up.

    :param lo: lowest candidate (inclusive)
    :param hi: highest candidate (inclusive)
    :param rng: random source, defaults to SystemRandom
    :return: a prime in [lo, hi]
    """
    if lo > hi:
        raise ValueError(f"Empty prime range [{lo}, {hi}]")
    if not any(is_prime(x) for x in range(lo, hi + 1)):
        raise ValueError(f"No prime in range [{lo}, {hi}]")

    rng = rng or _default_rng
    while True:
        candidate = rng.randint(lo, hi)
        if is_prime(candidate):
            return candidate


def mod_pow(base: int, exponent: int, modulus: int) -> int:
    """
    base^exponent mod modulus by repeated squaring.

    Even exponents square the base and halve; odd exponents fold the
    base into the result and step down by one. exponent == 0 gives 1.
    """
    if exponent < 0:
        raise ValueError("Exponent must be non-negative")
    if modulus <= 0:
        raise ValueError("Modulus must be positive")

    result = 1
    while exponent > 0:
        if exponent % 2 == 0:
            base = (base * base) % modulus
            exponent //= 2
        else:
            result = (base * result) % modulus
            exponent -= 1
    return result


def is_coprime(candidate: int, z: int) -> bool:
    """
    Euclidean algorithm on (z, candidate).

    Coprime when the remainder reaches 0 with a divisor of 1.
    """
    if candidate <= 0 or z <= 0:
        raise ValueError("Coprimality is only defined here for positive integers")

    dividend, divisor = z, candidate
    while True:
        remainder = dividend % divisor
        if remainder == 0:
            break
        dividend, divisor = divisor, remainder

    return divisor == 1


def mod_inverse(e: int, z: int) -> int:
    """
    Extended Euclid: return d with e*d = 1 (mod z).

    :raises ValueError: if gcd(e, z) != 1
    """
    old_r, r = z, e
    old_d, d = 0, 1

    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_d, d = d, old_d - quotient * d

    if old_r != 1:
        raise ValueError(f"{e} has no inverse modulo {z} (gcd={old_r})")

    # Bezout coefficient lies in (-z, z)
    if old_d < 0:
        old_d += z
    return old_d
