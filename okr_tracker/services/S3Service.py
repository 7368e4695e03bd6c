"""S3 Service for certificate files and organization logos."""

import logging
from typing import BinaryIO, Optional
import uuid
import boto3
from slugify import slugify
from okr_tracker.core.config import settings

logger = logging.getLogger(__name__)

s3 = boto3.client(
    "s3",
    region_name=settings.AWS_REGION,
    aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    endpoint_url=settings.S3_ENDPOINT_URL or None,
)


def public_url(bucket: str, key: str) -> str:
    base = settings.S3_PUBLIC_BASE_URL or settings.S3_ENDPOINT_URL
    if not base:
        return f"https://{bucket}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"
    return f"{base.rstrip('/')}/{bucket}/{key}"


def certificate_key(user_id: str, enrollment_id: str, filename: str) -> str:
    """Object key `{user_id}/{enrollment_id}/{safe-name}-{suffix}.{ext}`."""
    base_name, _, file_ext = filename.rpartition(".")
    if not base_name:
        base_name, file_ext = filename, ""
    safe_name = slugify(base_name) or "zertifikat"
    suffix = uuid.uuid4().hex[:8]
    extension = f".{file_ext.lower()}" if file_ext else ""
    return f"{user_id}/{enrollment_id}/{safe_name}-{suffix}{extension}"


def upload_certificate(
    fileobj: BinaryIO,
    user_id: str,
    enrollment_id: str,
    filename: str,
    content_type: str,
) -> str:
    """Upload to the certificates bucket and return the public URL."""
    key = certificate_key(user_id, enrollment_id, filename)
    s3.upload_fileobj(
        fileobj,
        settings.CERTIFICATES_BUCKET,
        key,
        ExtraArgs={"ContentType": content_type},
    )
    return public_url(settings.CERTIFICATES_BUCKET, key)


def find_latest_logo(organization_id: str) -> Optional[str]:
    """Most recently uploaded object under the organization's logo prefix."""
    response = s3.list_objects_v2(Bucket=settings.LOGOS_BUCKET, Prefix=f"{organization_id}/")
    objects = response.get("Contents", [])
    if not objects:
        return None
    latest = max(objects, key=lambda obj: obj["LastModified"])
    return public_url(settings.LOGOS_BUCKET, latest["Key"])
