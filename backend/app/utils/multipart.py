"""
Helpers for multipart endpoints that carry a JSON ``dto`` part next to files.
"""
from typing import Optional, Type, TypeVar

from fastapi import UploadFile
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)


def parse_dto(model: Type[M], raw: Optional[str], required: bool = True) -> Optional[M]:
    """Validate the JSON text of a form field against model"""
    if raw is None or not raw.strip():
        if required:
            raise ValidationError("Request part 'dto' is required", field="dto")
        return None
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "dto"
        raise ValidationError(f"{field}: {first.get('msg')}", field=field)


def present(upload: Optional[UploadFile]) -> Optional[UploadFile]:
    """Treat an empty file part (no filename) as absent"""
    if upload is None or not upload.filename:
        return None
    return upload
