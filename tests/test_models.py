import pytest

from peppercommit.lib.crypto import Commitment, commit
from peppercommit.lib.errors import EmptyInput, IntegrityMismatch, ParseFailure, SerializationFailure
from peppercommit.lib.models import SecretRecord, commit_many

from conftest import TEST_COMMITMENT_HEX, TEST_INPUT, TEST_PEPPER


def test_create_uses_injected_pepper(fixed_generator):
    record = SecretRecord.create(TEST_INPUT, fixed_generator, pepper_length=16)
    assert record.input == TEST_INPUT.encode("utf-8")
    assert record.pepper == TEST_PEPPER
    assert record.commitment.to_hex() == TEST_COMMITMENT_HEX
    assert record.created_at is not None
    assert record.is_valid()


def test_create_rejects_empty_input(fixed_generator):
    with pytest.raises(EmptyInput):
        SecretRecord.create("", fixed_generator)


def test_dict_round_trip(counting_generator):
    record = SecretRecord.create("héllo", counting_generator, encoding="base64")
    data = record.to_dict()
    assert set(data) == {"version", "input", "pepper", "commitment", "encoding", "created_at"}
    assert data["input"] == "héllo"
    assert len(data["pepper"]) == 64
    assert SecretRecord.from_dict(data) == record


def test_repr_hides_secrets(fixed_generator):
    record = SecretRecord.create(TEST_INPUT, fixed_generator)
    assert TEST_INPUT not in repr(record)
    assert record.pepper.hex() not in repr(record)


def test_non_utf8_input_cannot_be_serialized():
    value = b"\xff\xfe"
    record = SecretRecord(value, TEST_PEPPER, commit(value, TEST_PEPPER))
    with pytest.raises(SerializationFailure):
        record.to_dict()


def test_from_dict_detects_mismatch():
    data = SecretRecord(TEST_INPUT.encode(), TEST_PEPPER, commit(TEST_INPUT, TEST_PEPPER)).to_dict()
    data["input"] = "alice-bet-tails"
    with pytest.raises(IntegrityMismatch):
        SecretRecord.from_dict(data)


@pytest.mark.parametrize("mutate", [
    lambda d: d.pop("pepper"),
    lambda d: d.pop("commitment"),
    lambda d: d.update(version=2),
    lambda d: d.update(input=""),
    lambda d: d.update(input=42),
    lambda d: d.update(pepper="not hex"),
    lambda d: d.update(pepper=""),
    lambda d: d.update(encoding="base32"),
    lambda d: d.update(commitment="abcd"),
    lambda d: d.update(created_at=12345),
])
def test_from_dict_rejects_malformed(mutate):
    data = SecretRecord(TEST_INPUT.encode(), TEST_PEPPER, commit(TEST_INPUT, TEST_PEPPER)).to_dict()
    mutate(data)
    with pytest.raises(ParseFailure):
        SecretRecord.from_dict(data)


def test_from_dict_rejects_non_object():
    with pytest.raises(ParseFailure):
        SecretRecord.from_dict(["input", "pepper"])


def test_unknown_encoding_rejected():
    with pytest.raises(ValueError):
        SecretRecord(b"x", TEST_PEPPER, commit(b"x", TEST_PEPPER), encoding="base32")


def test_commit_many_keeps_order(counting_generator):
    values = [f"bet-{i}" for i in range(20)]
    records = commit_many(values, counting_generator, pepper_length=16)
    assert [r.input.decode() for r in records] == values
    assert all(r.is_valid() for r in records)


def test_commit_many_parallel_uses_distinct_peppers():
    values = [f"bet-{i}" for i in range(50)]
    records = commit_many(values, workers=4)
    assert [r.input.decode() for r in records] == values
    assert len({r.pepper for r in records}) == len(values)
    assert len({r.commitment for r in records}) == len(values)


def test_commit_many_rejects_empty_before_drawing_entropy():
    calls = []

    def entropy(n):
        calls.append(n)
        return bytes(n)

    from peppercommit.lib.crypto import PepperGenerator
    with pytest.raises(EmptyInput):
        commit_many(["ok", ""], PepperGenerator(entropy))
    assert calls == []


def test_commit_many_rejects_nothing():
    with pytest.raises(EmptyInput):
        commit_many([])


def test_commitment_equality_is_by_value():
    assert Commitment.from_hex(TEST_COMMITMENT_HEX) == commit(TEST_INPUT, TEST_PEPPER)


@pytest.mark.parametrize("value", [5, 0, None])
def test_create_rejects_non_text_input(fixed_generator, value):
    with pytest.raises(TypeError):
        SecretRecord.create(value, fixed_generator)


def test_record_rejects_non_bytes_fields():
    c = commit(TEST_INPUT, TEST_PEPPER)
    with pytest.raises(TypeError):
        SecretRecord(5, TEST_PEPPER, c)
    with pytest.raises(TypeError):
        SecretRecord(TEST_INPUT.encode(), 16, c)


def test_commit_many_rejects_non_text_input():
    with pytest.raises(TypeError):
        commit_many(["ok", 3])
