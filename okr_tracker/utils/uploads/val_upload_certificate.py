import io
import logging
from typing import NamedTuple, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from okr_tracker.constants.constants import CERTIFICATE_MAX_SIZE, CERTIFICATE_MIME_TYPES
from okr_tracker.services import S3Service

logger = logging.getLogger(__name__)


class UploadedCertificate(NamedTuple):
    file_name: str
    file_url: str
    file_size: int
    mime_type: str


async def validate_and_upload_certificate(
    file: Optional[UploadFile], user_id: str, enrollment_id: str
) -> UploadedCertificate:
    """
    Validate a certificate upload and store it in the certificates bucket.
    Returns the metadata for the certificate row.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="Keine Datei hochgeladen")

    content = await file.read()
    if len(content) > CERTIFICATE_MAX_SIZE:
        raise HTTPException(status_code=400, detail="Datei darf maximal 10 MB groß sein")

    mime_type = (file.content_type or "").lower()
    if mime_type not in CERTIFICATE_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Ungültiger Dateityp. Erlaubt sind: PDF, PNG, JPG, JPEG, WebP"
        )

    try:
        file_url = await run_in_threadpool(
            S3Service.upload_certificate,
            io.BytesIO(content),
            user_id,
            enrollment_id,
            file.filename,
            mime_type,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(
            "Certificate upload failed",
            extra={"enrollment_id": enrollment_id, "error": str(e)},
        )
        raise HTTPException(status_code=500, detail="Fehler beim Hochladen des Zertifikats")

    return UploadedCertificate(file.filename, file_url, len(content), mime_type)
