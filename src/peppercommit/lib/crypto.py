from __future__ import annotations
import hashlib
import hmac
import logging
import threading
from typing import Callable, Union

from Crypto.Random import get_random_bytes

from peppercommit.lib.errors import EmptyInput, EntropySourceUnavailable, ParseFailure
from peppercommit.lib.util.serialization import from_b64_str, from_hex_str, to_b64_str, to_hex_str

DEFAULT_HASH_SIZE_BYTES=64 # 512 bit
DEFAULT_PEPPER_BYTES=32
MIN_PEPPER_BYTES=16

# version 1 of the binding encoding, see encode_binding()
DOMAIN_TAG=b"peppercommit/v1"
LENGTH_PREFIX_BYTES=8

ENCODING_HEX="hex"
ENCODING_BASE64="base64"
ENCODINGS=(ENCODING_HEX, ENCODING_BASE64)

def digest(to_hash:bytes) -> bytes:
        return hashlib.sha512(to_hash).digest()

def as_input_bytes(value: Union[str, bytes]) -> bytes:
    """Text becomes UTF-8. Anything but str, bytes or bytearray is a TypeError."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"Input must be str or bytes, got {type(value).__name__}")

def as_pepper_bytes(value: bytes) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"Pepper must be bytes, got {type(value).__name__}")

def _length_prefixed(field: bytes) -> bytes:
    return len(field).to_bytes(LENGTH_PREFIX_BYTES, "big") + field

def encode_binding(input_value: bytes, pepper: bytes) -> bytes:
    """Serializes an (input, pepper) pair for hashing.

    The layout is the domain tag followed by the pepper and the input, each
    prefixed with its length as an unsigned 64-bit big-endian integer:

        b"peppercommit/v1" || len(pepper) || pepper || len(input) || input

    Because every field is length-prefixed, no two distinct pairs share an
    encoding. Changing this layout breaks every persisted commitment.
    """
    return DOMAIN_TAG + _length_prefixed(pepper) + _length_prefixed(input_value)


class PepperGenerator:
    """Produces fresh peppers from a cryptographically secure source.

    Parameters
    ----------
    entropy : callable
        Takes a byte count and returns that many random bytes. Defaults to
        pycryptodome's get_random_bytes, which reads the OS CSPRNG. Tests
        inject a deterministic callable here.
    """
    def __init__(self, entropy: Callable[[int], bytes] = get_random_bytes) -> None:
        self.entropy = entropy
        # the injected source may not be thread-safe
        self._lock = threading.Lock()

    def generate(self, length: int = DEFAULT_PEPPER_BYTES) -> bytes:
        if length < MIN_PEPPER_BYTES:
            raise ValueError(f"Pepper must be at least {MIN_PEPPER_BYTES} bytes, got {length}")

        try:
            with self._lock:
                pepper = self.entropy(length)
        except Exception as exc:
            raise EntropySourceUnavailable(f"Secure random source failed: {exc}") from exc

        if not isinstance(pepper, bytes):
            raise EntropySourceUnavailable(
                f"Secure random source returned {type(pepper).__name__}, expected bytes")
        if len(pepper) != length:
            raise EntropySourceUnavailable(
                f"Secure random source returned a short read ({len(pepper)} of {length} bytes)")

        logging.debug("Generated %d byte pepper", length)
        return pepper


class Commitment:
    """ Implements a SHA-512 commitment to an (input, pepper) pair."""
    def __init__(self, value: bytes) -> None:
        if len(value) != DEFAULT_HASH_SIZE_BYTES:
            raise ParseFailure(
                f"Commitment must be {DEFAULT_HASH_SIZE_BYTES} bytes, got {len(value)}")
        self.value = bytes(value)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Commitment):
            return NotImplemented
        return hmac.compare_digest(self.value, other.value)

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Commitment({self.to_hex()})"

    def to_hex(self) -> str:
        return to_hex_str(self.value)

    def to_b64(self) -> str:
        return to_b64_str(self.value)

    def encode(self, encoding: str = ENCODING_HEX) -> str:
        if encoding == ENCODING_HEX:
            return self.to_hex()
        if encoding == ENCODING_BASE64:
            return self.to_b64()
        raise ValueError(f"Unknown commitment encoding: {encoding}")

    @staticmethod
    def from_hex(hex_commit: str) -> Commitment:
        return Commitment(from_hex_str(hex_commit))

    @staticmethod
    def from_b64(b64_commit: str) -> Commitment:
        return Commitment(from_b64_str(b64_commit))

    @staticmethod
    def decode(text: str, encoding: str) -> Commitment:
        if encoding == ENCODING_HEX:
            return Commitment.from_hex(text)
        if encoding == ENCODING_BASE64:
            return Commitment.from_b64(text)
        raise ParseFailure(f"Unknown commitment encoding: {encoding!r}")

    @staticmethod
    def parse(text: str) -> Commitment:
        """Reads a commitment in either hex or base64 form."""
        if not isinstance(text, str):
            raise ParseFailure(f"Commitment must be a string, got {type(text).__name__}")
        text = text.strip()
        if len(text) == 2 * DEFAULT_HASH_SIZE_BYTES:
            return Commitment.from_hex(text)
        return Commitment.from_b64(text)


def commit(input_value: Union[str, bytes], pepper: bytes) -> Commitment:
    """Commits to input_value under pepper. Deterministic, no side effects.

    Raises EmptyInput if either the input or the pepper is empty, and
    TypeError if either is not a string or bytes.
    """
    input_bytes = as_input_bytes(input_value)
    pepper = as_pepper_bytes(pepper)
    if not input_bytes:
        raise EmptyInput("Input must not be empty")
    if not pepper:
        raise EmptyInput("Pepper must not be empty")

    return Commitment(digest(encode_binding(input_bytes, pepper)))


def verify(claimed_input: Union[str, bytes], claimed_pepper: bytes,
           commitment: Union[Commitment, bytes, str]) -> bool:
    """Checks a revealed (input, pepper) pair against a published commitment.

    A mismatch returns False. Only a malformed commitment raises
    (ParseFailure).
    """
    if isinstance(commitment, Commitment):
        expected = commitment
    elif isinstance(commitment, (bytes, bytearray)):
        expected = Commitment(bytes(commitment))
    else:
        expected = Commitment.parse(commitment)

    try:
        recomputed = commit(claimed_input, claimed_pepper)
    except EmptyInput:
        return False

    return hmac.compare_digest(recomputed.value, expected.value)
