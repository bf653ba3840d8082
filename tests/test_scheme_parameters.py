import pytest
import sympy

from fhe_store.core.exceptions import ParameterInvalid
from fhe_store.services.homomorphic_encryption import (
    CryptoContext, SchemeParameters, batching_plain_modulus
)


def test_default_parameters_match_reference_profile():
    params = SchemeParameters()

    assert params.scheme == "bfv"
    assert params.poly_modulus_degree == 4096
    assert params.coeff_mod_bit_sizes == (36, 36, 37)
    assert params.security_level == 128
    assert params.plain_modulus == 1032193
    assert params.max_plain_value == 516096


def test_batching_plain_modulus_is_prime_and_batching_friendly():
    for degree in (2048, 4096, 8192):
        p = batching_plain_modulus(degree, 20)
        assert sympy.isprime(p)
        assert p % (2 * degree) == 1
        assert p.bit_length() == 20


def test_batching_plain_modulus_picks_the_largest_candidate():
    p = batching_plain_modulus(4096, 20)
    step = 2 * 4096
    larger = range(p + step, 1 << 20, step)
    assert not any(sympy.isprime(q) for q in larger)


def test_batching_plain_modulus_rejects_bad_bit_sizes():
    with pytest.raises(ParameterInvalid):
        batching_plain_modulus(4096, 1)
    with pytest.raises(ParameterInvalid):
        batching_plain_modulus(4096, 61)


@pytest.mark.parametrize("kwargs", [
    {"poly_modulus_degree": 3000},
    {"poly_modulus_degree": 4096, "coeff_mod_bit_sizes": (60, 60)},
    {"coeff_mod_bit_sizes": ()},
    {"coeff_mod_bit_sizes": (36, 36, 70)},
    {"security_level": 192},
    {"security_level": 100},
    {"plain_modulus": 1032192},
    {"plain_modulus": 1000003},
    {"coeff_mod_bit_sizes": (18, 18), "plain_modulus": 1032193},
    {"scheme": "ckks"},
])
def test_inconsistent_parameters_fail_construction(kwargs):
    with pytest.raises(ParameterInvalid):
        SchemeParameters(**kwargs)


def test_stronger_security_level_accepts_smaller_chain():
    params = SchemeParameters.with_batching(
        poly_modulus_degree=4096, coeff_mod_bit_sizes=(25, 25, 25), security_level=192
    )
    assert sum(params.coeff_mod_bit_sizes) <= 75


def test_dict_round_trip():
    params = SchemeParameters()
    assert SchemeParameters.from_dict(params.to_dict()) == params


def test_from_dict_rejects_malformed_input():
    with pytest.raises(ParameterInvalid):
        SchemeParameters.from_dict({"scheme": "bfv"})
    with pytest.raises(ParameterInvalid):
        SchemeParameters.from_dict({**SchemeParameters().to_dict(), "poly_modulus_degree": "big"})


def test_generated_context_keys_belong_together(crypto_context):
    assert crypto_context.round_trip_check(123)
    assert len(crypto_context.fingerprint) == 16


def test_generated_contexts_have_distinct_fingerprints(crypto_context, foreign_context):
    assert crypto_context.fingerprint != foreign_context.fingerprint


def test_rebuild_from_serialized_parts(crypto_context):
    rebuilt = CryptoContext.from_serialized(
        crypto_context.parameters,
        crypto_context.serialize_params(),
        crypto_context.serialize_public_key(),
        crypto_context.serialize_secret_key(),
    )
    assert rebuilt.fingerprint == crypto_context.fingerprint
    assert rebuilt.round_trip_check(5)


def test_rebuild_rejects_parameters_that_disagree_with_the_blobs(crypto_context):
    wider = SchemeParameters.with_batching(plain_modulus_bits=24)
    with pytest.raises(ParameterInvalid):
        CryptoContext.from_serialized(
            wider,
            crypto_context.serialize_params(),
            crypto_context.serialize_public_key(),
            crypto_context.serialize_secret_key(),
        )


def test_rebuild_rejects_keys_made_under_other_parameters(crypto_context):
    other = CryptoContext.generate(SchemeParameters.with_batching(coeff_mod_bit_sizes=(30, 30, 30)))
    with pytest.raises(ParameterInvalid):
        CryptoContext.from_serialized(
            crypto_context.parameters,
            crypto_context.serialize_params(),
            other.serialize_public_key(),
            crypto_context.serialize_secret_key(),
        )
