"""bunq API client core.

This package provides:
- RSA keypair generation and request signing
- The installation / device-server / session-server handshake
- A credential store persisting the resulting bundle with owner-only permissions
- An authenticated requests client that refreshes the session and signs bodies

Resource calls (accounts, payments) live in ``bunqsys.domains``.
"""

__all__ = ["client", "context", "envelope", "handshake", "middleware", "signing", "store"]
