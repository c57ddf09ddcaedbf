"""TLS server identity: credential loading and SSL context construction.

Public API:
    ServerIdentity    : immutable certificate + private key bundle
    load_identity     : read both PEM files concurrently
    create_ssl_context: build the listener's server-side SSLContext
"""
from ipgate.tls.credentials import ServerIdentity, create_ssl_context, load_identity

__all__ = ["ServerIdentity", "create_ssl_context", "load_identity"]
