import hashlib
from typing import Optional

from app.core.exceptions import HashingError


class HashingService:
    """SHA-256 digests of certificate payloads"""

    def hash_string(self, data: Optional[str]) -> str:
        """Return the lowercase hex SHA-256 of the UTF-8 bytes of data"""
        if data is None:
            raise HashingError("Cannot hash null data")
        return hashlib.sha256(data.encode("utf-8")).hexdigest()


# Singleton instance
hashing_service = HashingService()
