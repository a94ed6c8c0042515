"""
Embedding Cipher

Encrypts face descriptors with the backend's RSA public key before they
leave the process.
"""
import base64
import json
import os
from typing import Dict, Optional, Sequence

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


class EmbeddingCipher:
    """
    Hybrid encryption of embeddings.

    A descriptor is larger than one RSA-OAEP block, so each one is sealed
    with a fresh AES-256-GCM key and the key is wrapped with RSA-OAEP
    (SHA-256).
    """

    ALGORITHM = "RSA-OAEP-256+A256GCM"

    def __init__(self, public_key_pem: Optional[str] = None):
        self._public_key = None
        if public_key_pem:
            self.load_public_key(public_key_pem)

    @property
    def has_key(self) -> bool:
        return self._public_key is not None

    def load_public_key(self, public_key_pem: str) -> None:
        """
        Raises:
            ValueError: not a PEM-encoded RSA public key
        """
        key = serialization.load_pem_public_key(public_key_pem.encode('utf-8'))
        if not isinstance(key, rsa.RSAPublicKey):
            raise ValueError("Backend public key is not an RSA key")
        self._public_key = key

    def encrypt_embedding(self, embedding: Sequence[float]) -> Dict[str, str]:
        """
        Encrypt one descriptor.

        Returns:
            JSON-safe dict with base64 encrypted_key, nonce and ciphertext
        """
        if self._public_key is None:
            raise RuntimeError("No public key loaded; call load_public_key first")

        plaintext = json.dumps([float(v) for v in embedding]).encode('utf-8')
        data_key = AESGCM.generate_key(bit_length=256)
        nonce = os.urandom(12)
        ciphertext = AESGCM(data_key).encrypt(nonce, plaintext, None)

        encrypted_key = self._public_key.encrypt(
            data_key,
            padding.OAEP(
                mgf=padding.MGF1(algorithm=hashes.SHA256()),
                algorithm=hashes.SHA256(),
                label=None
            )
        )

        return {
            "alg": self.ALGORITHM,
            "encrypted_key": _b64(encrypted_key),
            "nonce": _b64(nonce),
            "ciphertext": _b64(ciphertext),
        }
