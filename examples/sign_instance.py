#!/usr/bin/env python3
"""
sign_instance.py - Sign and verify an instance document

Generates an identity, signs a versioned document with it, verifies the
signature, then shows that changing the document breaks it.

Run: python sign_instance.py
"""

import json

from inkid import IdentityManager, Instance, Payload

# 1. Generate a new identity (RSA-2048 keypair, id = JWK Thumbprint)
identity = IdentityManager().create()
print(f"Identity.ID {identity.id}")

# 2. Build the instance payload
document = {
    "id": "6bf77fce-1275-4ac1-9e0b-81c7580bb2ee",
    "owner": "dd92ad1e-a7f6-46e7-8357-eb2a056ebc9b",
    "schema": "dummy.schema.ink",
    "version": {
        "id": "e58185f4-4e78-4f4d-a224-9666f8940f43",
        "app": {"name": "random-app", "version": "1.0.0", "url": "https://random-app"},
        "message": "commit message",
        "created": 123456789,
        "updated": 123456789,
        "removed": 123456789,
        "received": 123456789,
    },
    "permissions": {
        "public": False,
        "identities": {
            "de999afe-f9fe-48f2-9828-c078e146f47d": {"archive": True, "modify": False, "remove": False},
            "b24bee83-c797-4fb3-a79a-df1e97104fcd": {"archive": True, "modify": False, "remove": False},
        },
    },
}
instance = Instance(owner=identity, payload=Payload())
instance.set_payload_from_json(json.dumps(document))
print(f"Instance.ID {instance.payload.id}")

# 3. Sign and print the signed payload
instance.sign()
print(instance.payload.to_json().decode("utf-8"))

# 4. Verify, then tamper and verify again
print(f"\nValid: {instance.verify()}")
instance.payload.id = "1"
print(f"Valid after changing the id: {instance.verify()}")
