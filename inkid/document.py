"""
inkid Document Model - the versioned JSON records that get signed.

Serialization is the contract between signer and verifier: the signed
bytes are reproduced from these records at verify time, so member order,
indentation and key sorting must never vary between the two.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from inkid import config
from inkid.errors import SerializationError


logger = logging.getLogger(__name__)

RawJSON = Union[str, bytes, bytearray]

MAX_TIMESTAMP = 2**64 - 1


# =============================================================================
# Field readers
# =============================================================================


def _object(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SerializationError(f"'{where}' must be a JSON object")
    return value


def _string(data: Mapping[str, Any], name: str, where: str) -> str:
    value = data.get(name, "")
    if not isinstance(value, str):
        raise SerializationError(f"'{where}.{name}' must be a string")
    return value


def _flag(data: Mapping[str, Any], name: str, where: str) -> bool:
    value = data.get(name, False)
    if not isinstance(value, bool):
        raise SerializationError(f"'{where}.{name}' must be a boolean")
    return value


def _timestamp(data: Mapping[str, Any], name: str, where: str) -> int:
    value = data.get(name, 0)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_TIMESTAMP:
        raise SerializationError(f"'{where}.{name}' must be an unsigned 64-bit integer")
    return value


def _log_unknown(data: Mapping[str, Any], known, where: str) -> None:
    unknown = set(data) - set(known)
    if unknown:
        logger.debug(f"Dropping unknown members in '{where}': {sorted(unknown)}")


def load_json(raw: RawJSON) -> Any:
    """Decodes JSON bytes or text, raising SerializationError on failure."""
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationError(f"Invalid JSON: {e}") from e


# =============================================================================
# Payload records
# =============================================================================


@dataclass
class PermissionSet:
    """What an identity may do with a document."""

    archive: bool = False
    modify: bool = False
    remove: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"archive": self.archive, "modify": self.modify, "remove": self.remove}

    @classmethod
    def from_dict(cls, data: Any, where: str = "permission") -> "PermissionSet":
        data = _object(data, where)
        return cls(
            archive=_flag(data, "archive", where),
            modify=_flag(data, "modify", where),
            remove=_flag(data, "remove", where),
        )


@dataclass
class Permissions:
    """Document visibility and per-identity grants keyed by identity id."""

    public: bool = False
    identities: Dict[str, PermissionSet] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identities": {key: self.identities[key].to_dict() for key in sorted(self.identities)},
            "public": self.public,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Permissions":
        data = _object(data, "permissions")
        _log_unknown(data, ("identities", "public"), "permissions")
        identities = _object(data.get("identities"), "permissions.identities")
        return cls(
            public=_flag(data, "public", "permissions"),
            identities={
                key: PermissionSet.from_dict(value, f"permissions.identities.{key}")
                for key, value in identities.items()
            },
        )


@dataclass
class AppInfo:
    """The application that produced a version."""

    name: str = ""
    url: str = ""
    version: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "url": self.url, "version": self.version}

    @classmethod
    def from_dict(cls, data: Any) -> "AppInfo":
        data = _object(data, "version.app")
        where = "version.app"
        return cls(
            name=_string(data, "name", where),
            url=_string(data, "url", where),
            version=_string(data, "version", where),
        )


@dataclass
class VersionInfo:
    """Version metadata; timestamps are unsigned integers."""

    id: str = ""
    message: str = ""
    created: int = 0
    updated: int = 0
    removed: int = 0
    received: int = 0
    app: AppInfo = field(default_factory=AppInfo)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app": self.app.to_dict(),
            "created": self.created,
            "id": self.id,
            "message": self.message,
            "received": self.received,
            "removed": self.removed,
            "updated": self.updated,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "VersionInfo":
        data = _object(data, "version")
        known = ("app", "created", "id", "message", "received", "removed", "updated")
        _log_unknown(data, known, "version")
        return cls(
            id=_string(data, "id", "version"),
            message=_string(data, "message", "version"),
            created=_timestamp(data, "created", "version"),
            updated=_timestamp(data, "updated", "version"),
            removed=_timestamp(data, "removed", "version"),
            received=_timestamp(data, "received", "version"),
            app=AppInfo.from_dict(data.get("app")),
        )


# =============================================================================
# Signature records
# =============================================================================


@dataclass
class SignatureHeader:
    """
    Unprotected JWS header of one signature.

    ``alg`` is normally carried in the protected header; it is only set
    here when a foreign signer placed it in the unprotected one.
    """

    alg: Optional[str] = None
    jwk: Optional[Dict[str, Any]] = None
    x5c: Optional[List[str]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        if self.jwk is not None:
            data["jwk"] = self.jwk
        if self.alg is not None:
            data["alg"] = self.alg
        if self.x5c:
            data["x5c"] = list(self.x5c)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "SignatureHeader":
        data = dict(_object(data, "signatures.header"))
        alg = data.pop("alg", None)
        key = data.pop("jwk", None)
        chain = data.pop("x5c", None)
        if alg is not None and not isinstance(alg, str):
            raise SerializationError("'signatures.header.alg' must be a string")
        if key is not None and not isinstance(key, Mapping):
            raise SerializationError("'signatures.header.jwk' must be a JSON object")
        if chain is not None and (
            not isinstance(chain, list) or not all(isinstance(cert, str) for cert in chain)
        ):
            raise SerializationError("'signatures.header.x5c' must be a list of strings")
        return cls(alg=alg, jwk=dict(key) if key is not None else None, x5c=chain, extra=data)


@dataclass
class SignatureEntry:
    """One detached signature over a payload."""

    header: SignatureHeader
    signature: str
    protected: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "signature": self.signature,
            "protected": self.protected,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SignatureEntry":
        data = _object(data, "signatures[]")
        return cls(
            header=SignatureHeader.from_dict(data.get("header")),
            signature=_string(data, "signature", "signatures[]"),
            protected=_string(data, "protected", "signatures[]"),
        )


def _signatures(value: Any) -> List[SignatureEntry]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SerializationError("'signatures' must be a JSON array")
    return [SignatureEntry.from_dict(entry) for entry in value]


# =============================================================================
# Payload and envelope
# =============================================================================


@dataclass
class Payload:
    """
    The business document protected by signatures.

    Example:
        >>> payload = Payload.from_json(raw_bytes)
        >>> payload.signing_bytes()  # what signers sign
    """

    id: str = ""
    owner: str = ""
    schema: str = ""
    permissions: Permissions = field(default_factory=Permissions)
    version: VersionInfo = field(default_factory=VersionInfo)
    signatures: List[SignatureEntry] = field(default_factory=list)

    def to_dict(self, include_signatures: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "owner": self.owner,
            "permissions": self.permissions.to_dict(),
            "schema": self.schema,
            "version": self.version.to_dict(),
        }
        if include_signatures and self.signatures:
            data["signatures"] = [entry.to_dict() for entry in self.signatures]
        return data

    def to_json(self, include_signatures: bool = True, indent: Optional[int] = None) -> bytes:
        """Serializes to indented UTF-8 JSON bytes."""
        indent = config.PAYLOAD_INDENT if indent is None else indent
        try:
            text = json.dumps(self.to_dict(include_signatures), indent=indent, ensure_ascii=False)
            return text.encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Payload is not serializable: {e}") from e

    def signing_bytes(self, indent: Optional[int] = None) -> bytes:
        """The exact bytes covered by every signature: the payload without ``signatures``."""
        return self.to_json(include_signatures=False, indent=indent)

    @classmethod
    def from_dict(cls, data: Any) -> "Payload":
        data = _object(data, "payload")
        known = ("id", "owner", "permissions", "schema", "version", "signatures")
        _log_unknown(data, known, "payload")
        return cls(
            id=_string(data, "id", "payload"),
            owner=_string(data, "owner", "payload"),
            schema=_string(data, "schema", "payload"),
            permissions=Permissions.from_dict(data.get("permissions")),
            version=VersionInfo.from_dict(data.get("version")),
            signatures=_signatures(data.get("signatures")),
        )

    @classmethod
    def from_json(cls, raw: RawJSON) -> "Payload":
        """
        Parses a payload from JSON.

        Raises:
            SerializationError: On malformed JSON or wrongly typed members.
        """
        data = load_json(raw)
        if not isinstance(data, Mapping):
            raise SerializationError("Payload must be a JSON object")
        return cls.from_dict(data)


@dataclass
class JSONSignature:
    """
    JWS general JSON serialization: the payload travels base64url-encoded
    next to its signatures instead of containing them.
    """

    payload: str
    signatures: List[SignatureEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"payload": self.payload, "signatures": [entry.to_dict() for entry in self.signatures]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "JSONSignature":
        data = _object(data, "envelope")
        payload = data.get("payload")
        if not isinstance(payload, str):
            raise SerializationError("Envelope 'payload' must be a base64url string")
        if "signatures" in data:
            signatures = _signatures(data["signatures"])
        elif "signature" in data:
            # Flattened serialization of a single signature
            signatures = [SignatureEntry.from_dict(data)]
        else:
            signatures = []
        return cls(payload=payload, signatures=signatures)

    @classmethod
    def from_json(cls, raw: RawJSON) -> "JSONSignature":
        return cls.from_dict(load_json(raw))
