"""Tests for the signed-token wire format and backends."""

from __future__ import annotations

import pytest

from tenantcore import ConfigurationError, SecurityConfig
from tenantcore.signing import (
    HmacBackend,
    SigningBackend,
    UnsignedBackend,
    decode_claims,
    encode_claims,
    get_signing_backend,
    looks_signed,
)


class TestBackends:
    def test_unsigned_round_trip(self) -> None:
        backend = UnsignedBackend()
        token = backend.sign(b'{"a":1}').serialize()
        assert token.startswith("unsigned.")
        assert token.endswith(".")
        assert backend.verify(token) == b'{"a":1}'

    def test_hmac_round_trip(self) -> None:
        backend = HmacBackend("secret", kid="k1")
        signed = backend.sign(encode_claims({"sub": "u1"}))
        assert signed.algorithm == "hmac"
        assert decode_claims(backend.verify(signed.serialize())) == {"sub": "u1"}

    def test_hmac_rejects_other_kid(self) -> None:
        token = HmacBackend("secret", kid="k1").sign(b"x").serialize()
        assert HmacBackend("secret", kid="k2").verify(token) is None

    def test_hmac_rejects_unsigned(self) -> None:
        token = UnsignedBackend().sign(b"x").serialize()
        assert HmacBackend("secret", kid="unsigned").verify(token) is None

    def test_hmac_requires_secret(self) -> None:
        with pytest.raises(ConfigurationError):
            HmacBackend("")

    def test_kid_without_separator(self) -> None:
        with pytest.raises(ConfigurationError):
            HmacBackend("secret", kid="a.b")

    def test_protocol(self) -> None:
        assert isinstance(HmacBackend("s"), SigningBackend)
        assert isinstance(UnsignedBackend(), SigningBackend)


class TestHelpers:
    def test_looks_signed(self) -> None:
        assert looks_signed("k.p.s")
        assert not looks_signed("ab" * 32)

    @pytest.mark.parametrize("raw", [None, b"not json", b"[1, 2]"])
    def test_decode_claims_rejects(self, raw) -> None:
        assert decode_claims(raw) is None


class TestFactory:
    def test_default_unsigned(self) -> None:
        assert get_signing_backend().algorithm == "none"
        assert get_signing_backend(SecurityConfig()).algorithm == "none"

    def test_hmac(self) -> None:
        backend = get_signing_backend(SecurityConfig(signing_backend="hmac", shared_secret="s", signing_key_id="k9"))
        assert backend.active_kid == "k9"

    def test_hmac_without_secret_refuses(self) -> None:
        with pytest.raises(ConfigurationError):
            get_signing_backend(SecurityConfig(signing_backend="hmac"))
