"""
Shared pytest fixtures for inkid tests.
"""

import pytest

from inkid import Identity, IdentityManager, Payload


SAMPLE_PAYLOAD = b"""{
    "id": "6bf77fce-1275-4ac1-9e0b-81c7580bb2ee",
    "owner": "dd92ad1e-a7f6-46e7-8357-eb2a056ebc9b",
    "schema": "dummy.schema.ink",
    "version": {
        "id": "e58185f4-4e78-4f4d-a224-9666f8940f43",
        "app": {
            "name": "random-app",
            "version": "1.0.0",
            "url": "https://random-app"
        },
        "message": "commit message",
        "created": 123456789,
        "updated": 123456789,
        "removed": 123456789,
        "received": 123456789
    },
    "permissions": {
        "public": false,
        "identities": {
            "de999afe-f9fe-48f2-9828-c078e146f47d": {
                "archive": true,
                "modify": false,
                "remove": false
            },
            "b24bee83-c797-4fb3-a79a-df1e97104fcd": {
                "archive": true,
                "modify": false,
                "remove": false
            }
        }
    }
}"""


@pytest.fixture(scope="session")
def identity() -> Identity:
    """A 2048-bit identity shared across the session (key generation is slow)."""
    return IdentityManager().create()


@pytest.fixture(scope="session")
def other_identity() -> Identity:
    """A second, unrelated identity."""
    return IdentityManager().create()


@pytest.fixture
def sample_json() -> bytes:
    """Raw JSON of the sample instance payload."""
    return SAMPLE_PAYLOAD


@pytest.fixture
def payload() -> Payload:
    """A fresh, unsigned sample payload."""
    return Payload.from_json(SAMPLE_PAYLOAD)
