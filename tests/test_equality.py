import pytest

from fhe_store.core.exceptions import (
    CiphertextIncompatible, DecodeFailure, EncodeRangeError, KeyMismatch
)


@pytest.mark.parametrize("value", [0, 42, -17, 516096, -516096])
def test_equal_values_compare_equal(codec, equality, value):
    assert equality.equals(codec.encode(value), value)


@pytest.mark.parametrize("stored, query", [(42, 43), (42, -42), (0, 1), (-5, 5), (516096, -516096)])
def test_different_values_compare_unequal(codec, equality, stored, query):
    assert not equality.equals(codec.encode(stored), query)


def test_comparison_does_not_consume_the_stored_ciphertext(codec, equality):
    stored = codec.encode(9)
    assert not equality.equals(stored, 8)
    assert equality.equals(stored, 9)
    assert codec.decode(stored) == 9


def test_stale_ciphertext_is_incompatible_not_unequal(equality, foreign_codec):
    assert CiphertextIncompatible is KeyMismatch
    with pytest.raises(CiphertextIncompatible):
        equality.equals(foreign_codec.encode(42), 42)


def test_malformed_ciphertext_fails(equality):
    with pytest.raises(DecodeFailure):
        equality.equals(b"FHE1" + b"\x00" * 8, 1)


def test_out_of_range_query_fails(codec, equality):
    with pytest.raises(EncodeRangeError):
        equality.equals(codec.encode(1), codec.max_value + 1)
