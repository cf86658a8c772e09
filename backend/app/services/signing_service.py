"""
Signing Service - RSA signatures (SHA256withRSA, PKCS#1 v1.5) for medical
records and certificates.

Private keys are PEM files in key storage, normally PKCS#8 encrypted with a
password the signer supplies per request. Signatures are Base64 strings.
"""

import base64
import binascii
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from app.core.exceptions import SigningError, StorageError, ValidationError
from app.core.logging_config import logger
from app.models.clinic import Clinic
from app.models.user import User
from app.services.key_storage_service import key_storage_service

ENCRYPTED_PEM_MARKERS = (b"ENCRYPTED PRIVATE KEY", b"Proc-Type: 4,ENCRYPTED")


def load_private_key(pem: bytes, password: Optional[str]) -> rsa.RSAPrivateKey:
    """Load an RSA private key, decrypting it with password when the PEM is encrypted"""
    encrypted = any(marker in pem for marker in ENCRYPTED_PEM_MARKERS)
    try:
        key = serialization.load_pem_private_key(
            pem,
            password=password.encode("utf-8") if encrypted and password else None,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"Could not load private key (wrong password or invalid key): {e}")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("Private key is not an RSA key")
    return key


def sign_data(private_key: rsa.RSAPrivateKey, data: str) -> str:
    signature = private_key.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


class SigningService:

    async def _sign_with_stored_key(self, key_path: Optional[str], password: Optional[str],
                                    data: str, owner_label: str) -> str:
        if not key_path:
            raise ValidationError(f"{owner_label} has no private key configured")
        if not password:
            raise ValidationError(f"Private key password for {owner_label} is required",
                                  field="private_key_password")
        try:
            pem = await key_storage_service.get_private_key_content(key_path)
        except StorageError as e:
            raise SigningError(f"Private key of {owner_label} is unavailable: {e.message}")

        signature = sign_data(load_private_key(pem, password), data)
        logger.log_audit_event("signature_generated", owner_label, key_path)
        return signature

    async def generate_vet_signature(self, vet: User, data: str, password: Optional[str]) -> str:
        """Sign data with the vet's private key"""
        return await self._sign_with_stored_key(vet.vet_private_key, password, data, f"vet {vet.id}")

    async def generate_clinic_signature(self, clinic: Clinic, data: str, password: Optional[str]) -> str:
        """Sign data with the clinic's private key"""
        return await self._sign_with_stored_key(clinic.private_key, password, data, f"clinic {clinic.id}")

    async def get_vet_public_key(self, vet: User) -> str:
        return (await key_storage_service.get_public_key_content(vet.vet_public_key)).decode("utf-8")

    async def get_clinic_public_key(self, clinic: Clinic) -> str:
        return (await key_storage_service.get_public_key_content(clinic.public_key)).decode("utf-8")

    def verify_signature(self, public_key_pem: Optional[Union[str, bytes]], data: Optional[str],
                         signature_b64: Optional[str]) -> bool:
        """True only when signature_b64 is a valid signature of data. Never raises."""
        if not public_key_pem or data is None or not signature_b64:
            return False
        if isinstance(public_key_pem, str):
            public_key_pem = public_key_pem.encode("utf-8")
        try:
            public_key = serialization.load_pem_public_key(public_key_pem)
            if not isinstance(public_key, rsa.RSAPublicKey):
                return False
            public_key.verify(
                base64.b64decode(signature_b64, validate=True),
                data.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
            return True
        except (InvalidSignature, ValueError, TypeError, binascii.Error, UnsupportedAlgorithm) as e:
            logger.debug(f"Signature verification failed: {type(e).__name__}")
            return False


# Singleton instance
signing_service = SigningService()
