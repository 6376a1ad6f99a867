"""
Unit tests for identities, thumbprints and key records.
"""

import json
import re

import pytest
from jwcrypto import jwk
from jwcrypto.common import base64url_decode

from inkid import (
    Identity,
    IdentityManager,
    KeyGenerationError,
    RSAPrivateJWK,
    RSAPublicJWK,
    SerializationError,
)


class TestIdentityCreation:
    """Tests for IdentityManager.create()."""

    def test_id_is_64_lowercase_hex(self, identity):
        """The identity id is a 64-character lowercase hex string."""
        assert len(identity.id) == 64
        assert re.fullmatch(r"[0-9a-f]{64}", identity.id)

    def test_private_key_is_rsa(self, identity):
        """Created identities carry a loadable RSA private key."""
        key = identity.signing_key()
        assert key.get("kty") == "RSA"
        assert key.has_private

    def test_public_key_has_no_private_members(self, identity):
        """The public half carries only kty, n and e."""
        data = identity.public_key.to_dict()
        assert {"kty", "n", "e"} <= set(data)
        assert not {"d", "p", "q", "dp", "dq", "qi"} & set(data)
        assert not identity.verification_key().has_private

    def test_public_key_matches_private_key(self, identity):
        """Public and private halves share modulus and exponent."""
        assert identity.public_key.n == identity.private_key.n
        assert identity.public_key.e == identity.private_key.e

    def test_identities_are_unique(self, identity, other_identity):
        """Two generated identities never share an id."""
        assert identity.id != other_identity.id

    def test_key_size_below_minimum_rejected(self):
        """Keys smaller than 2048 bits are refused."""
        with pytest.raises(KeyGenerationError, match="below the minimum"):
            IdentityManager(key_size=1024).create()

    def test_primitive_failure_propagates(self, monkeypatch):
        """A failing key generator surfaces as KeyGenerationError."""

        def broken_generate(**kwargs):
            raise OSError("entropy source unavailable")

        monkeypatch.setattr(jwk.JWK, "generate", broken_generate)
        with pytest.raises(KeyGenerationError, match="entropy source unavailable"):
            IdentityManager().create()


class TestThumbprint:
    """Tests for IdentityManager.thumbprint()."""

    def test_matches_identity_id(self, identity):
        """Recomputing from the public key yields the identity id."""
        assert IdentityManager.thumbprint(identity.public_key) == identity.id

    def test_matches_rfc7638_thumbprint(self, identity):
        """The hex id is the same digest jwcrypto computes for RFC 7638."""
        expected = base64url_decode(identity.verification_key().thumbprint()).hex()
        assert identity.id == expected

    def test_private_key_gives_same_thumbprint(self, identity):
        """Only public members are read from a private key."""
        assert IdentityManager.thumbprint(identity.private_key) == identity.id
        assert IdentityManager.thumbprint(identity.signing_key()) == identity.id

    def test_reparsed_copy_gives_same_thumbprint(self, identity):
        """A re-serialized, re-parsed public key hashes identically."""
        reparsed = json.loads(IdentityManager.export_public(identity))
        assert IdentityManager.thumbprint(reparsed) == identity.id

    def test_extra_members_ignored(self, identity):
        """kid, alg and unknown members do not affect the thumbprint."""
        data = identity.public_key.to_dict()
        data.update(kid="key-1", alg="RS256", use="sig", x5t="abc")
        assert IdentityManager.thumbprint(data) == identity.id

    def test_member_order_ignored(self, identity):
        """Member order of the input mapping does not matter."""
        data = identity.public_key.to_dict()
        reordered = {name: data[name] for name in ("n", "kty", "e")}
        assert IdentityManager.thumbprint(reordered) == identity.id

    def test_changed_modulus_changes_thumbprint(self, identity):
        """Changing key material changes the id."""
        data = identity.public_key.to_dict()
        data["n"] = data["n"][:-2] + ("AA" if data["n"][-2:] != "AA" else "AB")
        assert IdentityManager.thumbprint(data) != identity.id

    def test_missing_member_rejected(self, identity):
        """A key without a modulus cannot be thumbprinted."""
        data = identity.public_key.to_dict()
        del data["n"]
        with pytest.raises(SerializationError, match="'n'"):
            IdentityManager.thumbprint(data)

    def test_non_rsa_key_rejected(self):
        """Only RSA keys are supported."""
        key = jwk.JWK.generate(kty="OKP", crv="Ed25519")
        with pytest.raises(SerializationError):
            IdentityManager.thumbprint(key)


class TestKeyExport:
    """Tests for export and reload of key material."""

    def test_export_private_contains_private_members(self, identity):
        """Private export includes the private exponent and primes."""
        data = json.loads(IdentityManager.export_private(identity))
        for name in ("kty", "n", "e", "d", "p", "q", "dp", "dq", "qi"):
            assert name in data

    def test_export_public_has_no_private_component(self, identity):
        """Public export carries only kty, n and e."""
        data = json.loads(IdentityManager.export_public(identity))
        assert {"kty", "n", "e"} <= set(data)
        assert "d" not in data

    def test_load_private_round_trip(self, identity):
        """An exported private key reloads to the same identity."""
        restored = IdentityManager.load_private(IdentityManager.export_private(identity))
        assert restored == identity

    def test_load_private_rejects_public_key(self, identity):
        """A public JWK is not a usable private key."""
        with pytest.raises(SerializationError, match="'d'"):
            IdentityManager.load_private(IdentityManager.export_public(identity))

    def test_load_public_round_trip(self, identity):
        """An exported public key parses back to the same record."""
        assert IdentityManager.load_public(IdentityManager.export_public(identity)) == identity.public_key

    def test_load_private_rejects_garbage(self):
        """Malformed JSON raises SerializationError."""
        with pytest.raises(SerializationError, match="Invalid JWK JSON"):
            IdentityManager.load_private("not-json")

    def test_identity_dict_round_trip(self, identity):
        """Identity.to_dict() and from_dict() are inverse."""
        data = identity.to_dict()
        assert set(data) == {"id", "_jwk", "jwk"}
        assert Identity.from_dict(data) == identity

    def test_identity_dict_with_wrong_id_rejected(self, identity):
        """A stored id that is not the key's thumbprint is refused."""
        data = identity.to_dict()
        data["id"] = "0" * 64
        with pytest.raises(SerializationError, match="does not match"):
            Identity.from_dict(data)

    def test_identity_dict_with_foreign_public_key_rejected(self, identity, other_identity):
        """A public key from another keypair is refused."""
        data = identity.to_dict()
        data["jwk"] = other_identity.public_key.to_dict()
        with pytest.raises(SerializationError, match="does not belong"):
            Identity.from_dict(data)


class TestKeyRecords:
    """Tests for the structured JWK records."""

    def test_unknown_members_kept_in_extra(self, identity):
        """Unrecognised members survive a round trip."""
        data = identity.public_key.to_dict()
        data["x5t"] = "thumb"
        record = RSAPublicJWK.from_dict(data)
        assert record.extra == {"x5t": "thumb"}
        assert record.to_dict()["x5t"] == "thumb"

    def test_optional_members_parsed(self, identity):
        """kid, alg and use are named fields."""
        data = dict(identity.public_key.to_dict(), kid="k1", alg="RS256", use="sig")
        record = RSAPublicJWK.from_dict(data)
        assert (record.kid, record.alg, record.use) == ("k1", "RS256", "sig")
        assert record.extra == {}

    def test_public_record_drops_private_members(self, identity):
        """Parsing a private JWK as public discards private members."""
        record = RSAPublicJWK.from_dict(identity.private_key.to_dict())
        assert "d" not in record.to_dict()

    def test_private_record_public_half(self, identity):
        """RSAPrivateJWK.public() yields the matching public record."""
        assert identity.private_key.public() == identity.public_key

    def test_wrong_member_type_rejected(self, identity):
        """Key members must be strings."""
        data = dict(identity.public_key.to_dict(), e=65537)
        with pytest.raises(SerializationError, match="must be a string"):
            RSAPublicJWK.from_dict(data)

    def test_from_jwk_requires_private_key(self, identity):
        """A public jwcrypto key cannot become a private record."""
        with pytest.raises(SerializationError, match="no private component"):
            RSAPrivateJWK.from_jwk(identity.verification_key())
