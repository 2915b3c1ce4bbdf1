from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from watchdo.integrations.storage import UPLOAD_CONTENT_TYPES, get_storage
from watchdo.models import User
from watchdo.routes_auth import require_user
from watchdo.schemas import PresignRequest, PresignResponse
from watchdo.services.errors import ValidationError

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@router.post("/presign", response_model=PresignResponse)
async def presign_upload(body: PresignRequest, user: User = Depends(require_user)):
    """Presigned PUT URL for a user image (jpeg, png or webp)."""
    if body.content_type not in UPLOAD_CONTENT_TYPES:
        raise ValidationError("Only JPEG, PNG and WebP images can be uploaded", field="content_type")
    upload = get_storage().presign_upload(user.id, body.content_type)
    if upload is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Upload storage unavailable")
    return PresignResponse(
        upload_url=upload.upload_url,
        key=upload.key,
        content_type=upload.content_type,
        expires_in=upload.expires_in,
    )
