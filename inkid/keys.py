"""
Structured JWK records for RSA keys.

The members the protocol reads are named fields; anything else a key
library emits (``oth``, ``key_ops``, ``x5t``...) is preserved in ``extra``
so keys round-trip without loss.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from jwcrypto import jwk
from jwcrypto.common import JWException

from inkid.errors import SerializationError


RSA_KEY_TYPE = "RSA"

_PUBLIC_MEMBERS = ("kty", "n", "e")
_PRIVATE_MEMBERS = ("d", "p", "q", "dp", "dq", "qi")
_OPTIONAL_MEMBERS = ("kid", "alg", "use")


def _load_mapping(data: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise SerializationError(f"Invalid JWK JSON: {e}") from e
    if not isinstance(data, Mapping):
        raise SerializationError("JWK must be a JSON object")
    return dict(data)


def _take_members(data: Dict[str, Any], names, required: bool) -> Dict[str, Any]:
    taken = {}
    for name in names:
        if name not in data:
            if required:
                raise SerializationError(f"JWK is missing required member '{name}'")
            continue
        value = data.pop(name)
        if not isinstance(value, str):
            raise SerializationError(f"JWK member '{name}' must be a string")
        taken[name] = value
    return taken


def _check_kty(members: Dict[str, Any]) -> None:
    if members["kty"] != RSA_KEY_TYPE:
        raise SerializationError(f"Unsupported key type '{members['kty']}', expected RSA")


def _to_jwcrypto(members: Dict[str, Any]) -> jwk.JWK:
    try:
        return jwk.JWK(**members)
    except (JWException, ValueError, TypeError) as e:
        raise SerializationError(f"Invalid RSA key material: {e}") from e


@dataclass(frozen=True)
class RSAPublicJWK:
    """
    Public half of an RSA keypair in JWK form.

    Attributes:
        n: Base64url-encoded modulus.
        e: Base64url-encoded public exponent.
        kty: Key type, always "RSA".
        kid: Optional key identifier.
        alg: Optional algorithm hint.
        use: Optional intended use.
        extra: Members not recognised above.
    """

    n: str
    e: str
    kty: str = RSA_KEY_TYPE
    kid: Optional[str] = None
    alg: Optional[str] = None
    use: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union[str, bytes, Mapping[str, Any]]) -> "RSAPublicJWK":
        """Parse a public JWK, ignoring private members if present."""
        data = _load_mapping(data)
        members = _take_members(data, _PUBLIC_MEMBERS, required=True)
        _check_kty(members)
        members.update(_take_members(data, _OPTIONAL_MEMBERS, required=False))
        for name in _PRIVATE_MEMBERS:
            data.pop(name, None)
        return cls(extra=data, **members)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(kty=self.kty, n=self.n, e=self.e)
        for name in _OPTIONAL_MEMBERS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    def to_jwk(self) -> jwk.JWK:
        return _to_jwcrypto(self.to_dict())


@dataclass(frozen=True)
class RSAPrivateJWK:
    """
    Private half of an RSA keypair in JWK form (RFC 7518 section 6.3.2).

    Multi-prime keys carry their ``oth`` member in ``extra``.
    """

    n: str
    e: str
    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str
    kty: str = RSA_KEY_TYPE
    kid: Optional[str] = None
    alg: Optional[str] = None
    use: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union[str, bytes, Mapping[str, Any]]) -> "RSAPrivateJWK":
        data = _load_mapping(data)
        members = _take_members(data, _PUBLIC_MEMBERS + _PRIVATE_MEMBERS, required=True)
        _check_kty(members)
        members.update(_take_members(data, _OPTIONAL_MEMBERS, required=False))
        return cls(extra=data, **members)

    @classmethod
    def from_jwk(cls, key: jwk.JWK) -> "RSAPrivateJWK":
        if not key.has_private:
            raise SerializationError("Key has no private component")
        return cls.from_dict(key.export_private(as_dict=True))

    def public(self) -> RSAPublicJWK:
        """Return the public half, keeping kid/alg/use but no private members."""
        return RSAPublicJWK(n=self.n, e=self.e, kty=self.kty, kid=self.kid, alg=self.alg, use=self.use)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        for name in _PUBLIC_MEMBERS + _PRIVATE_MEMBERS:
            data[name] = getattr(self, name)
        for name in _OPTIONAL_MEMBERS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    def to_jwk(self) -> jwk.JWK:
        return _to_jwcrypto(self.to_dict())
