import uuid

from fastapi import HTTPException


def is_valid_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def require_uuid(value: str, detail: str = "Ungültige ID") -> str:
    """Reject malformed path ids with a 400 before touching the database."""
    if not is_valid_uuid(value):
        raise HTTPException(status_code=400, detail=detail)
    return value
