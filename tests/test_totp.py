"""TOTP generation and verification tests."""

import pytest

from gatepass.core.settings import Settings
from gatepass.services.totp import (
    InvalidSeedError,
    TOTPVerifier,
    base32_decode,
    generate_token,
)
from tests.conftest import SEED, T0

# RFC 6238 appendix B, HMAC-SHA256 column, truncated to six digits.
RFC6238_SEED = "GEZDGNBVGY3TQOJQ" * 3 + "GEZA"
RFC6238_VECTORS = [
    (59, "119246"),
    (1111111109, "084774"),
    (1111111111, "062674"),
    (1234567890, "819424"),
    (2000000000, "698825"),
    (20000000000, "737706"),
]


@pytest.fixture()
def verifier() -> TOTPVerifier:
    return TOTPVerifier(Settings())


class TestBase32:
    def test_decodes_reference_seed(self):
        assert base32_decode("JBSWY3DPEHPK3PXP") == b"Hello!\xde\xad\xbe\xef"

    def test_is_case_insensitive_and_ignores_padding(self):
        assert base32_decode("jbswy3dpehpk3pxp") == base32_decode("JBSWY3DPEHPK3PXP")
        assert base32_decode("GEZA====") == b"12"

    @pytest.mark.parametrize("seed", ["", "====", "JBSWY3DP1", "JBSW Y3DP", "ÄBCD"])
    def test_rejects_invalid_seeds(self, seed):
        with pytest.raises(InvalidSeedError):
            base32_decode(seed)


class TestGenerate:
    @pytest.mark.parametrize(("unix_time", "expected"), RFC6238_VECTORS)
    def test_matches_rfc6238_vectors(self, unix_time, expected):
        assert generate_token(RFC6238_SEED, unix_time // 30) == expected

    def test_tokens_are_six_zero_padded_digits(self):
        for counter in range(200):
            token = generate_token(SEED, counter)
            assert len(token) == 6
            assert token.isdigit()

    def test_invalid_seed_raises(self):
        with pytest.raises(InvalidSeedError):
            generate_token("not-base32!", 1)

    def test_counter_must_fit_uint64(self):
        with pytest.raises(ValueError):
            generate_token(SEED, -1)


class TestValidate:
    @pytest.mark.parametrize("counter", [1, 1000, T0 // 30, 2**40])
    def test_generated_token_validates_at_its_own_step(self, verifier, counter):
        token = verifier.generate(SEED, counter)
        assert verifier.validate(token, SEED, at=counter * 30)

    @pytest.mark.parametrize("delta", [-1, 0, 1])
    def test_accepts_one_step_of_skew(self, verifier, delta):
        counter = T0 // 30
        token = verifier.generate(SEED, counter)
        assert verifier.validate(token, SEED, at=(counter + delta) * 30 + 5)

    @pytest.mark.parametrize("delta", [-2, 2])
    def test_rejects_two_steps_of_skew(self, verifier, delta):
        counter = T0 // 30
        token = verifier.generate(SEED, counter)
        assert not verifier.validate(token, SEED, at=(counter + delta) * 30)

    def test_wrong_seed_does_not_validate(self, verifier):
        token = verifier.generate(SEED, T0 // 30)
        assert not verifier.validate(token, RFC6238_SEED, at=T0)

    def test_invalid_seed_never_matches(self, verifier):
        assert not verifier.validate("123456", "bad seed!", at=T0)

    @pytest.mark.parametrize("token", ["", "12345", "1234567", "12345a", "١٢٣٤٥٦"])
    def test_malformed_tokens_are_rejected(self, verifier, token):
        assert not verifier.validate(token, SEED, at=T0)

    def test_counter_zero_has_no_previous_step(self, verifier):
        assert verifier.candidate_counters(10) == [0, 1]
