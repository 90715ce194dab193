from __future__ import annotations

import logging
from datetime import datetime, timezone
from multiprocessing.pool import ThreadPool
from typing import Any, Iterable, List, Union

from peppercommit.lib.crypto import (Commitment, PepperGenerator, as_input_bytes, as_pepper_bytes,
                                     commit, verify,
                                     DEFAULT_PEPPER_BYTES, ENCODING_HEX, ENCODINGS)
from peppercommit.lib.errors import (EmptyInput, IntegrityMismatch, ParseFailure,
                                     SerializationFailure)
from peppercommit.lib.util.serialization import from_hex_str, stringify, to_hex_str

RECORD_FORMAT_VERSION=1

# field names of the persisted record
FIELD_VERSION="version"
FIELD_INPUT="input"
FIELD_PEPPER="pepper"
FIELD_COMMITMENT="commitment"
FIELD_ENCODING="encoding"
FIELD_CREATED_AT="created_at"

REQUIRED_FIELDS=(FIELD_VERSION, FIELD_INPUT, FIELD_PEPPER, FIELD_COMMITMENT)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SecretRecord:
    """The secret half of one commitment, kept until reveal.

    Attributes
    ----------
    input : bytes
        The committed value, UTF-8 text as bytes.
    pepper : bytes
        The random hiding factor.
    commitment : Commitment
        Hash(input, pepper). The only part that is published before reveal.
    created_at : str or None
        ISO-8601 UTC timestamp of the commit.
    encoding : str
        How the commitment is written out, "hex" or "base64".
    """
    def __init__(self, input_value: bytes, pepper: bytes, commitment: Commitment,
                 created_at: str | None = None, encoding: str = ENCODING_HEX) -> None:
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown commitment encoding: {encoding}")
        self.input = as_input_bytes(input_value)
        self.pepper = as_pepper_bytes(pepper)
        self.commitment = commitment
        self.created_at = created_at
        self.encoding = encoding

    @classmethod
    def create(cls, input_value: Union[str, bytes], generator: PepperGenerator | None = None,
               pepper_length: int = DEFAULT_PEPPER_BYTES, encoding: str = ENCODING_HEX) -> SecretRecord:
        """Commit phase: draws a fresh pepper and commits to input_value."""
        input_value = as_input_bytes(input_value)
        if not input_value:
            raise EmptyInput("Input must not be empty")

        generator = generator or PepperGenerator()
        pepper = generator.generate(pepper_length)
        commitment = commit(input_value, pepper)
        logging.info("Created commitment %s", commitment.encode(encoding))

        return cls(input_value, pepper, commitment, _utc_now(), encoding)

    def is_valid(self) -> bool:
        return verify(self.input, self.pepper, self.commitment)

    def validate(self) -> None:
        """Raises IntegrityMismatch unless commitment == Hash(input, pepper)."""
        if not self.is_valid():
            raise IntegrityMismatch(
                f"Commitment {self.commitment.encode(self.encoding)} does not match the stored input and pepper")

    def __eq__(self, other) -> bool:
        if not isinstance(other, SecretRecord):
            return NotImplemented
        return (self.input == other.input and self.pepper == other.pepper
                and self.commitment == other.commitment
                and self.created_at == other.created_at
                and self.encoding == other.encoding)

    def __repr__(self) -> str:
        # never print the secret halves
        return f"SecretRecord(commitment={self.commitment.encode(self.encoding)}, created_at={self.created_at})"

    def to_dict(self) -> dict[str, Any]:
        try:
            input_text = stringify(self.input)
        except UnicodeDecodeError as exc:
            raise SerializationFailure(f"Input is not valid UTF-8: {exc}") from exc

        data = {
            FIELD_VERSION: RECORD_FORMAT_VERSION,
            FIELD_INPUT: input_text,
            FIELD_PEPPER: to_hex_str(self.pepper),
            FIELD_COMMITMENT: self.commitment.encode(self.encoding),
            FIELD_ENCODING: self.encoding,
        }
        if self.created_at is not None:
            data[FIELD_CREATED_AT] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretRecord:
        """Rebuilds a record and checks its commitment.

        Raises ParseFailure for a malformed dict and IntegrityMismatch when the
        fields parse but do not agree with each other.
        """
        if not isinstance(data, dict):
            raise ParseFailure(f"Expected a JSON object, got {type(data).__name__}")

        missing = [f for f in REQUIRED_FIELDS if f not in data]
        if missing:
            raise ParseFailure(f"Missing fields: {', '.join(missing)}")

        if data[FIELD_VERSION] != RECORD_FORMAT_VERSION:
            raise ParseFailure(f"Unsupported record version: {data[FIELD_VERSION]!r}")

        input_text = data[FIELD_INPUT]
        if not isinstance(input_text, str) or not input_text:
            raise ParseFailure("Field 'input' must be a non-empty string")

        encoding = data.get(FIELD_ENCODING, ENCODING_HEX)
        if encoding not in ENCODINGS:
            raise ParseFailure(f"Unknown commitment encoding: {encoding!r}")

        created_at = data.get(FIELD_CREATED_AT)
        if created_at is not None and not isinstance(created_at, str):
            raise ParseFailure("Field 'created_at' must be a string")

        pepper = from_hex_str(data[FIELD_PEPPER])
        if not pepper:
            raise ParseFailure("Field 'pepper' must not be empty")

        commitment = Commitment.decode(data[FIELD_COMMITMENT], encoding)

        # a field that decodes but was not written by to_dict() has been altered
        if data[FIELD_PEPPER] != to_hex_str(pepper):
            raise IntegrityMismatch("Field 'pepper' is not in canonical lowercase hex")
        if data[FIELD_COMMITMENT] != commitment.encode(encoding):
            raise IntegrityMismatch(f"Field 'commitment' is not canonical {encoding}")

        record = cls(input_text.encode("utf-8"), pepper, commitment, created_at, encoding)
        record.validate()
        return record


def commit_many(values: Iterable[Union[str, bytes]], generator: PepperGenerator | None = None,
                pepper_length: int = DEFAULT_PEPPER_BYTES, encoding: str = ENCODING_HEX,
                workers: int = 1) -> List[SecretRecord]:
    """Creates one independent SecretRecord per value, in order.

    With workers > 1 the records are built on a thread pool that shares
    the generator and nothing else.
    """
    values = [as_input_bytes(v) for v in values]
    if not values:
        raise EmptyInput("Nothing to commit")
    # reject before drawing any entropy
    for position, value in enumerate(values):
        if not value:
            raise EmptyInput(f"Input #{position} must not be empty")

    generator = generator or PepperGenerator()

    def create(value):
        return SecretRecord.create(value, generator, pepper_length, encoding)

    if workers <= 1 or len(values) == 1:
        return [create(v) for v in values]

    logging.debug("Committing %d values on %d workers", len(values), workers)
    with ThreadPool(processes=min(workers, len(values))) as pool:
        return pool.map(create, values)
