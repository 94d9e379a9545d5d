#!/usr/bin/env python3
"""
Show the TLS certificate of a registration server.

Connects to the server, prints the certificate details an operator needs for
a trust decision and optionally checks a fingerprint received out of band.

Usage:
    # Show the certificate of the configured server (REGISTRATION_URL)
    python3 show-server-certificate.py

    # Check the certificate of a local SMT server
    python3 show-server-certificate.py https://smt.example.com \\
        --fingerprint SHA256:AB:CD:...

    # Import the confirmed certificate into the system trust store
    python3 show-server-certificate.py https://smt.example.com \\
        --fingerprint SHA1:01:23:... --import
"""

import argparse
import sys

from sysreg.config import settings
from sysreg.exceptions import CertificateError, TransportError
from sysreg.observability.logging import get_logger, setup_logging
from sysreg.services.certificate import SslCertificate
from sysreg.services.tls_probe import probe_server
from sysreg.services.trust import TrustDecisionStore, confirm_certificate

logger = get_logger("show-server-certificate")


def print_certificate(certificate: SslCertificate) -> None:
    view = certificate.view()
    rows = [
        ("Subject", view.subject_name),
        ("Subject organization", view.subject_organization),
        ("Subject organization unit", view.subject_organization_unit),
        ("Issuer", view.issuer_name),
        ("Issuer organization", view.issuer_organization),
        ("Issuer organization unit", view.issuer_organization_unit),
        ("Issued on", view.issued_on.isoformat()),
        ("Expires on", view.expires_on.isoformat()),
        ("Serial number", view.serial),
        ("SHA1 fingerprint", view.sha1_fingerprint),
        ("SHA256 fingerprint", view.sha256_fingerprint),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"{label:<{width}}  {value or '-'}")

    if certificate.expired():
        print("\nWARNING: the certificate has expired")
    elif not certificate.valid_yet():
        print("\nWARNING: the certificate is not valid yet")


def parse_fingerprint(value: str) -> tuple[str, str]:
    """Split TYPE:VALUE, e.g. SHA256:AB:CD:..."""
    kind, sep, fingerprint = value.partition(":")
    if not sep or not fingerprint:
        raise argparse.ArgumentTypeError("expected TYPE:VALUE, e.g. SHA256:AB:CD:...")
    return kind, fingerprint


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Show the TLS certificate of a registration server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the certificate
  python3 show-server-certificate.py https://smt.example.com

  # Verify a fingerprint and import the certificate
  python3 show-server-certificate.py https://smt.example.com --fingerprint SHA1:... --import
        """,
    )
    parser.add_argument("url", nargs="?", default=settings.registration_url, help="Server URL")
    parser.add_argument(
        "--fingerprint",
        type=parse_fingerprint,
        help="Expected fingerprint as TYPE:VALUE (TYPE is SHA1 or SHA256)",
    )
    parser.add_argument(
        "--import",
        dest="import_cert",
        action="store_true",
        help="Import the certificate into the system trust store (needs --fingerprint)",
    )
    parser.add_argument(
        "--insecure", action="store_true", help="Do not verify the server certificate"
    )

    args = parser.parse_args()
    setup_logging()

    if not args.url:
        parser.error("no server URL given and REGISTRATION_URL is not set")
    if args.import_cert and not args.fingerprint:
        parser.error("--import requires --fingerprint")

    store = TrustDecisionStore()
    try:
        certificate = probe_server(args.url, store, insecure=args.insecure)
    except TransportError as e:
        failure = e.trust_failure
        if failure is None or failure.certificate is None:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)
        print(f"Certificate verification failed: {failure.error_message}\n")
        certificate = failure.certificate
    else:
        failure = store.failure

    print_certificate(certificate)

    if args.fingerprint is None:
        sys.exit(0 if failure is None else 1)

    kind, fingerprint = args.fingerprint
    if not certificate.fingerprint_match(kind, fingerprint):
        print(f"\n{kind.upper()} fingerprint does NOT match", file=sys.stderr)
        sys.exit(1)
    print(f"\n{kind.upper()} fingerprint matches")

    if args.import_cert:
        try:
            if failure is not None:
                confirm_certificate(failure, kind, fingerprint)
            certificate.import_to_system()
        except CertificateError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print("Certificate imported into the system trust store")

    sys.exit(0)


if __name__ == "__main__":
    main()
