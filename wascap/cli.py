#!/usr/bin/env python3
"""
Wascap Command Line Interface

Usage:
    wascap keygen --role <role> [--json]
    wascap sign <input.wasm> <output.wasm> [--account-seed S] [--module-seed S]
                [-c CAP]... [-t TAG]... [--name N] [--ver V] [--rev R]
                [--provider] [--expires-days D] [--not-before-days D]
    wascap inspect <module.wasm> [--issuer KEY] [--raw] [--json]
    wascap caps
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import config
from .caps import CAPABILITY_NAMES, capability_name
from .errors import WascapError
from .jwt import Token
from .keys import KeyPair, KeyRole
from .logging_config import configure_logging, set_correlation_id
from .util import mask_sensitive, utc_rfc3339
from .validation import ValidationReport, validate
from .wasm import extract_claims, hash_excluding, sign_buffer_with_claims

logger = logging.getLogger(__name__)


def load_file(path: str) -> bytes:
    """Read a module from disk."""
    with open(path, 'rb') as f:
        return f.read()


def save_file(data: bytes, path: str):
    """Write a module to disk."""
    with open(path, 'wb') as f:
        f.write(data)


def _resolve_identity(seed: Optional[str], role: KeyRole, label: str) -> KeyPair:
    """Rebuild an identity from a seed, or generate one outside production."""
    if seed:
        identity = KeyPair.from_seed(seed)
        logger.info("Using %s seed %s", label, mask_sensitive(seed))
        return identity

    if config.is_production():
        raise WascapError(f"{label} seed required in production (set WASCAP_{label.upper()}_SEED)")

    identity = KeyPair.generate(role)
    print(f"Generated {label} key {identity.encode_public()}", file=sys.stderr)
    print(f"  seed: {identity.encode_seed()}", file=sys.stderr)
    return identity


def _timestamp(value: Optional[int], absent: str) -> str:
    return utc_rfc3339(value) if value is not None else absent


def _flag(value: Optional[bool], good: str, bad: str) -> str:
    if value is None:
        return "not checked"
    return good if value else bad


def render_report(token: Token, report: ValidationReport) -> str:
    """Human-readable rendering of a token and its validation report."""
    claims = token.claims
    version = claims.version or "-"
    if claims.revision is not None:
        version = f"{version} ({claims.revision})"

    lines = [
        f"{claims.name or 'unnamed module'} - capability claims",
        f"  Account       {claims.issuer}",
        f"  Module        {claims.subject}",
        f"  Version       {version}",
        f"  Provider      {'yes' if claims.provider else 'no'}",
        f"  Issued        {utc_rfc3339(claims.issued_at)}",
        f"  Not before    {_timestamp(claims.not_before, 'immediately')}",
        f"  Expires       {_timestamp(claims.expires, 'never')}",
        f"  Hash          {claims.module_hash}",
        f"  Token ID      {claims.token_id}",
        "  Capabilities",
    ]
    if claims.capabilities:
        lines.extend(f"    {capability_name(c)} ({c})" for c in sorted(claims.capabilities))
    else:
        lines.append("    none")

    lines.append("  Tags")
    if claims.tags:
        lines.extend(f"    {t}" for t in sorted(claims.tags))
    else:
        lines.append("    none")

    lines.extend([
        "Validation",
        f"  Signature     {'valid' if report.signature_valid else 'INVALID'}",
        f"  Expired       {'YES' if report.expired else 'no'}",
        f"  Not yet valid {'YES' if report.not_yet_valid else 'no'}",
        f"  Module hash   {_flag(report.hash_matches, 'matches', 'MISMATCH')}",
        f"  Issuer        {_flag(report.issuer_matches, 'matches', 'UNEXPECTED')}",
        f"  Can use       {'yes' if report.can_use else 'NO'}",
    ])
    return "\n".join(lines)


def cmd_keygen(args) -> int:
    """Generate a new identity."""
    identity = KeyPair.generate(args.role)
    if args.json:
        print(json.dumps({
            "role": identity.role.value,
            "public_key": identity.encode_public(),
            "seed": identity.encode_seed(),
        }, indent=2))
    else:
        print(f"Public Key: {identity.encode_public()}")
        print(f"Seed: {identity.encode_seed()}")
    return 0


def cmd_sign(args) -> int:
    """Embed signed claims into a module."""
    module = load_file(args.input)

    account = _resolve_identity(args.account_seed or config.ACCOUNT_SEED, KeyRole.ACCOUNT, "account")
    subject = _resolve_identity(args.module_seed or config.MODULE_SEED, KeyRole.MODULE, "module")

    signed = sign_buffer_with_claims(
        module,
        subject,
        account,
        expires_in_days=args.expires_days,
        not_before_days=args.not_before_days,
        capabilities=args.cap or [],
        tags=args.tag or [],
        name=args.name,
        version=args.ver,
        revision=args.rev,
        provider=args.provider,
        section_name=args.section,
    )
    save_file(signed, args.output)

    print(f"Signed module saved to: {args.output}")
    print(f"  Module  {subject.encode_public()}")
    print(f"  Account {account.encode_public()}")
    return 0


def cmd_inspect(args) -> int:
    """Extract, validate and print a module's claims."""
    module = load_file(args.module)
    token = extract_claims(module, args.section)
    if token is None:
        print(f"No capability claims found in {args.module}", file=sys.stderr)
        return 2

    report = validate(
        token,
        expected_hash=hash_excluding(module, args.section),
        expected_issuer=args.issuer,
    )

    if args.raw:
        print(token.jwt)
    elif args.json:
        print(json.dumps({
            "claims": token.claims.to_dict(),
            "report": report.to_dict(),
            "failures": report.failures(),
        }, indent=2))
    else:
        print(render_report(token, report))

    return 0 if report.can_use else 1


def cmd_caps(args) -> int:
    """List well-known capabilities."""
    for cap, label in sorted(CAPABILITY_NAMES.items()):
        print(f"{cap:<22} {label}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wascap",
        description="Embed, extract and validate signed capability claims in WebAssembly modules"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    keygen = subparsers.add_parser("keygen", help="Generate a key identity")
    keygen.add_argument("--role", choices=[r.value for r in KeyRole], default=KeyRole.ACCOUNT.value)
    keygen.add_argument("--json", action="store_true", help="Output JSON")
    keygen.set_defaults(func=cmd_keygen)

    sign = subparsers.add_parser("sign", help="Embed signed claims into a module")
    sign.add_argument("input", help="Module to sign")
    sign.add_argument("output", help="Where to write the signed module")
    sign.add_argument("--account-seed", help="Encoded account seed (default: $WASCAP_ACCOUNT_SEED)")
    sign.add_argument("--module-seed", help="Encoded module seed (default: $WASCAP_MODULE_SEED)")
    sign.add_argument("-c", "--cap", action="append", help="Capability namespace (repeatable)")
    sign.add_argument("-t", "--tag", action="append", help="Tag (repeatable)")
    sign.add_argument("--name", help="Module name")
    sign.add_argument("--ver", help="Module version")
    sign.add_argument("--rev", type=int, help="Module revision")
    sign.add_argument("--provider", action="store_true", help="Module is a capability provider")
    sign.add_argument("--expires-days", type=int, help="Days until the claims expire")
    sign.add_argument("--not-before-days", type=int, help="Days until the claims become valid")
    sign.add_argument("--section", default=config.SECTION_NAME, help="Custom section name")
    sign.set_defaults(func=cmd_sign)

    inspect = subparsers.add_parser("inspect", help="Show and validate a module's claims")
    inspect.add_argument("module", help="Module to inspect")
    inspect.add_argument("--issuer", help="Require this issuer public key")
    inspect.add_argument("--section", default=config.SECTION_NAME, help="Custom section name")
    output = inspect.add_mutually_exclusive_group()
    output.add_argument("--raw", action="store_true", help="Print the raw token")
    output.add_argument("--json", action="store_true", help="Output JSON")
    inspect.set_defaults(func=cmd_inspect)

    caps = subparsers.add_parser("caps", help="List well-known capabilities")
    caps.set_defaults(func=cmd_caps)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON, log_file=config.LOG_FILE)
    set_correlation_id()

    try:
        return args.func(args)
    except (WascapError, OSError) as exc:
        if config.is_debug():
            raise
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
