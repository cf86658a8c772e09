"""
QR Code Service - encodes certificates in the EU Digital COVID Certificate
style transport format:

    payload JSON -> CBOR -> COSE_Sign array -> zlib -> Base45 -> "HC1:" prefix

The COSE_Sign array is ``[protected, unprotected, payload, signatures]`` with
one ``[protected, unprotected, signature]`` entry for the vet and one for the
clinic.
"""

import base64
import binascii
import io
import json
import zlib

import base45
import cbor2
import qrcode
from qrcode.constants import ERROR_CORRECT_M

from app.core.config import settings
from app.core.exceptions import QrCodeGenerationError
from app.core.logging_config import logger
from app.models.certificate import Certificate

COSE_HEADER_ALG = 1
COSE_ALG_PS256 = -37


class QrCodeService:

    def _decode_signature(self, value: str, label: str) -> bytes:
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise QrCodeGenerationError(f"Invalid Base64 encoding for {label} signature")

    def build_cose_structure(self, certificate: Certificate, payload_cbor: bytes) -> bytes:
        vet_signature = self._decode_signature(certificate.vet_signature, "vet")
        clinic_signature = self._decode_signature(certificate.clinic_signature, "clinic")

        protected_headers = cbor2.dumps({COSE_HEADER_ALG: COSE_ALG_PS256})
        empty_protected = cbor2.dumps({})
        signatures = [
            [empty_protected, {}, vet_signature],
            [empty_protected, {}, clinic_signature],
        ]
        return cbor2.dumps([protected_headers, {}, payload_cbor, signatures])

    def generate_qr_data(self, certificate: Certificate) -> str:
        """Return the ``HC1:`` string for a certificate"""
        logger.info(f"Generating QR data for certificate {certificate.id}")
        try:
            payload = json.loads(certificate.payload)
        except (json.JSONDecodeError, TypeError) as e:
            raise QrCodeGenerationError(f"Certificate payload is not valid JSON: {e}")

        payload_cbor = cbor2.dumps(payload)
        cose = self.build_cose_structure(certificate, payload_cbor)
        compressed = zlib.compress(cose, zlib.Z_BEST_COMPRESSION)

        encoded = base45.b45encode(compressed)
        if isinstance(encoded, bytes):
            encoded = encoded.decode("ascii")

        logger.debug(
            f"QR data for certificate {certificate.id}: cbor={len(payload_cbor)}B "
            f"cose={len(cose)}B zlib={len(compressed)}B"
        )
        return settings.QR_DATA_PREFIX + encoded

    def generate_qr_image(self, data: str, box_size: int = 6) -> bytes:
        """Render data as a PNG QR code"""
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=2)
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


# Singleton instance
qr_code_service = QrCodeService()
