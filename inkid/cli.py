"""
inkid Command Line Interface.

Provides commands for creating an identity, computing thumbprints,
signing payload files and verifying signed payloads.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from inkid.errors import InkIdError
from inkid.identity import IdentityManager
from inkid.signing import SignedDocument


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Generate a new RSA identity."""
    try:
        identity = IdentityManager().create()
    except InkIdError as e:
        print(f"Error generating identity: {e}", file=sys.stderr)
        return 1

    private_key = IdentityManager.export_private(identity).decode("utf-8")
    public_key = IdentityManager.export_public(identity).decode("utf-8")

    if args.env:
        compact = json.dumps(identity.private_key.to_dict())
        print(f"export INKID_IDENTITY='{identity.id}'")
        print(f"export INKID_PRIVATE_KEY='{compact}'")
    else:
        print("NEW IDENTITY GENERATED\n")
        print(f"ID: {identity.id}")
        print("\n--- PRIVATE KEY (Keep Secret / Set as INKID_PRIVATE_KEY) ---")
        print(private_key)
        print("\n--- PUBLIC KEY ---")
        print(public_key)
    return 0


def cmd_thumbprint(args: argparse.Namespace) -> int:
    """Print the identity id of a JWK file."""
    try:
        raw = json.loads(Path(args.keyfile).read_text())
        print(IdentityManager.thumbprint(raw))
        return 0
    except (OSError, ValueError, InkIdError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_sign(args: argparse.Namespace) -> int:
    """Sign a payload file and print the signed payload."""
    private_key = args.key or os.environ.get('INKID_PRIVATE_KEY')
    if not private_key:
        print("Error: Missing private key. Set INKID_PRIVATE_KEY or use --key", file=sys.stderr)
        return 1

    try:
        identity = IdentityManager.load_private(private_key)
        document = SignedDocument.from_json(Path(args.payload).read_bytes())
        document.sign(identity, embed_public_key=False if args.no_embed else None)
    except OSError as e:
        print(f"Error reading payload: {e}", file=sys.stderr)
        return 1
    except InkIdError as e:
        print(f"Error signing payload: {e}", file=sys.stderr)
        return 1

    print(document.to_json().decode("utf-8"))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a signed payload file. Exit 0 if valid, 1 if invalid, 2 on error."""
    try:
        document = SignedDocument.from_json(Path(args.payload).read_bytes())
        valid = document.verify()
        signers = document.signer_ids()
    except (OSError, InkIdError) as e:
        if args.json:
            print(json.dumps({"valid": None, "error": str(e)}))
        else:
            print(f"Error verifying payload: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps({"valid": valid, "id": document.payload.id, "signers": signers}, indent=2))
    else:
        print("VALID" if valid else "INVALID")
    return 0 if valid else 1


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='inkid',
        description='inkid - self-sovereign identities and signed documents'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    p_init = subparsers.add_parser('init', help='Generate a new identity')
    p_init.add_argument('--env', action='store_true', help='Output as environment variables')

    p_thumb = subparsers.add_parser('thumbprint', help='Compute the identity id of a JWK file')
    p_thumb.add_argument('keyfile', help='Path to a JWK JSON file')

    p_sign = subparsers.add_parser('sign', help='Sign a payload file')
    p_sign.add_argument('payload', help='Path to the payload JSON file')
    p_sign.add_argument('--key', help='Private key (JWK JSON)')
    p_sign.add_argument('--no-embed', action='store_true', help='Do not embed the public key in the signature')

    p_verify = subparsers.add_parser('verify', help='Verify a signed payload file')
    p_verify.add_argument('payload', help='Path to the signed payload JSON file')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command == 'init':
        return cmd_init(args)
    elif args.command == 'thumbprint':
        return cmd_thumbprint(args)
    elif args.command == 'sign':
        return cmd_sign(args)
    elif args.command == 'verify':
        return cmd_verify(args)
    else:
        parser.print_help()
        return 0


if __name__ == '__main__':
    sys.exit(main())
