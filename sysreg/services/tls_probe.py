"""
TLS handshake probe.

Opens one TLS connection to the registration server and performs the
handshake with the recording verify callback, so an untrusted server
certificate can be shown to the operator before anything is registered.
"""

import contextlib
import socket
from urllib.parse import urlparse

from OpenSSL import SSL, crypto
from structlog import get_logger

from sysreg.config import settings
from sysreg.exceptions import RegistrationTimeoutError, TransportError
from sysreg.services.certificate import SslCertificate
from sysreg.services.trust import TrustDecisionStore, make_verify_callback

logger = get_logger(__name__)

HTTPS_PORT = 443


def _server_address(url: str) -> tuple[str, int]:
    """
    Host and port of a server URL.

        >>> _server_address("https://smt.example.com/connect")
        ('smt.example.com', 443)
        >>> _server_address("https://[::1]:8443")
        ('::1', 8443)
    """
    parsed = urlparse(url)
    if not parsed.hostname:
        raise TransportError(f"Invalid server URL: {url}")
    return parsed.hostname, parsed.port or HTTPS_PORT


def _ssl_context(
    store: TrustDecisionStore,
    trusted_certificate: SslCertificate | None,
    insecure: bool,
) -> SSL.Context:
    ctx = SSL.Context(SSL.TLS_CLIENT_METHOD)
    ctx.set_default_verify_paths()
    if trusted_certificate is not None:
        # pinned for this handshake only, the context is not reused. The
        # pinned certificate may be a leaf, so it ends the chain by itself.
        cert_store = ctx.get_cert_store()
        cert_store.add_cert(crypto.X509.from_cryptography(trusted_certificate.x509_cert))
        cert_store.set_flags(crypto.X509StoreFlags.PARTIAL_CHAIN)
    ctx.set_verify(SSL.VERIFY_NONE if insecure else SSL.VERIFY_PEER, make_verify_callback(store))
    return ctx


def probe_server(
    url: str,
    store: TrustDecisionStore,
    *,
    trusted_certificate: SslCertificate | None = None,
    insecure: bool = False,
    timeout: float | None = None,
) -> SslCertificate:
    """
    Perform a TLS handshake with the server and return its certificate.

    Args:
        url: Registration server URL
        store: Receives the verification failure of this handshake
        trusted_certificate: Operator confirmed certificate trusted for this handshake
        insecure: Do not verify the server certificate
        timeout: Connect timeout in seconds, defaults to REQUEST_TIMEOUT

    Raises:
        TransportError: Connection or handshake failed; carries the trust failure
        RegistrationTimeoutError: The server did not answer in time
    """
    host, port = _server_address(url)
    connect_timeout = timeout or settings.request_timeout
    ctx = _ssl_context(store, trusted_certificate, insecure)

    logger.info("probing_server_certificate", host=host, port=port, insecure=insecure)

    try:
        sock = socket.create_connection((host, port), timeout=connect_timeout)
    except TimeoutError as exc:
        raise RegistrationTimeoutError(f"Connecting to {host}:{port} timed out", connect_timeout) from exc
    except OSError as exc:
        raise TransportError(f"Cannot connect to {host}:{port}: {exc}") from exc

    # pyOpenSSL needs a blocking socket for the handshake
    sock.settimeout(None)

    with contextlib.closing(SSL.Connection(ctx, sock)) as conn:
        conn.set_tlsext_host_name(host.encode("idna"))
        conn.set_connect_state()
        try:
            conn.do_handshake()
        except SSL.Error as exc:
            failure = store.failure
            logger.error(
                "tls_handshake_failed",
                host=host,
                error=str(exc),
                verify_error=failure.error_message if failure else None,
            )
            reason = failure.error_message if failure else str(exc)
            raise TransportError(f"TLS handshake with {host} failed: {reason}", failure) from exc
        except OSError as exc:
            raise TransportError(f"TLS handshake with {host} failed: {exc}", store.failure) from exc

        peer = conn.get_peer_certificate()

    if peer is None:
        raise TransportError(f"{host} did not present a certificate", store.failure)

    certificate = SslCertificate.from_openssl(peer)
    logger.info(
        "server_certificate_received",
        host=host,
        subject=certificate.subject_name(),
        sha256=certificate.sha256_fingerprint(),
    )
    return certificate
