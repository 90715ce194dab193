import base64
import binascii
import string

from peppercommit.lib.errors import ParseFailure

HEX_DIGITS = frozenset(string.hexdigits)


def stringify(buffer) -> str:
    """Decodes a UTF-8 byte buffer, raising UnicodeDecodeError on bad input."""
    return bytes(buffer).decode("utf-8")

def to_b64_str(data: bytes) -> str:
    """Returns a utf-8 encoded string for
       the base64 encoding of the input data.
    """
    return base64.b64encode(data).decode("utf-8")

def from_b64_str(text: str) -> bytes:
    """Strict inverse of to_b64_str. Raises ParseFailure on
       anything that is not padded standard base64.
    """
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, AttributeError) as exc:
        raise ParseFailure(f"not valid base64: {text!r}") from exc

def to_hex_str(data: bytes) -> str:
    return data.hex()

def from_hex_str(text: str) -> bytes:
    # bytes.fromhex() tolerates whitespace, we don't
    if not isinstance(text, str) or len(text) % 2 or not HEX_DIGITS.issuperset(text):
        raise ParseFailure(f"not valid hex: {text!r}")
    return bytes.fromhex(text)
