from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = logging.getLogger(__name__)

# bunq only accepts 2048 bit RSA keys
KEY_SIZE = 2048


@dataclass(frozen=True)
class KeyPair:
    private_key_pem: str
    public_key_pem: str


def generate_keypair(bits: int = KEY_SIZE) -> KeyPair:
    """Generate a fresh RSA keypair for an installation.

    The private key is serialized as unencrypted PKCS8 PEM and the public key
    as SubjectPublicKeyInfo PEM. Failures from the crypto backend are not
    caught: a host that cannot generate keys cannot talk to bunq at all.
    """
    logger.debug("Generating new RSA keypair")
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(private_key_pem=private_pem.decode("ascii"), public_key_pem=public_pem.decode("ascii"))


def load_private_key(private_key_pem: str) -> rsa.RSAPrivateKey:
    """Parse an unencrypted PEM private key, raising ValueError or TypeError if unusable."""
    key = serialization.load_pem_private_key(private_key_pem.encode("ascii"), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise TypeError("bunq request signing requires an RSA private key")
    return key


def sign(data: bytes, private_key_pem: str) -> str:
    """Sign ``data`` with RSA PKCS#1 v1.5 / SHA-256 and return it base64 encoded."""
    key = load_private_key(private_key_pem)
    signature = key.sign(data, padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


__all__ = ["KEY_SIZE", "KeyPair", "generate_keypair", "load_private_key", "sign"]
