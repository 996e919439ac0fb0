from fastapi import APIRouter, Depends, HTTPException, Response

from marketplace.core.config import settings
from marketplace.schemas.media import PresignedUploadOut
from marketplace.schemas.upload import PresignRequest
from marketplace.services.auth import Actor, get_actor
from marketplace.services.rate_limit import FixedWindowRateLimiter, get_rate_limiter
from marketplace.services.storage import S3Presigner, build_object_key, get_presigner, guess_content_type

router = APIRouter()


async def _rate_limit_or_429(limiter: FixedWindowRateLimiter, actor: Actor) -> dict[str, str]:
    limit = settings.upload_rate_limit_per_minute
    rl = await limiter.allow(key=f"uploads:{actor.user_id}", limit=limit, window_seconds=60)
    if not rl.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many upload requests",
            headers={"Retry-After": str(rl.reset_seconds)},
        )
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(rl.remaining),
        "X-RateLimit-Reset": str(rl.reset_seconds),
    }


@router.post("/uploads/presign", response_model=PresignedUploadOut)
async def presign_upload(
    payload: PresignRequest,
    response: Response,
    actor: Actor = Depends(get_actor),
    presigner: S3Presigner = Depends(get_presigner),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> PresignedUploadOut:
    """Generic presigned PUT for files not tied to a listing (avatars, documents, development media)."""
    response.headers.update(await _rate_limit_or_429(limiter, actor))

    content_type = payload.content_type or guess_content_type(payload.file_name) or "application/octet-stream"
    upload = presigner.presign_put(
        key=build_object_key(payload.folder, payload.file_name, owner_id=actor.user_id),
        content_type=content_type,
    )
    return PresignedUploadOut(
        upload_url=upload.upload_url,
        key=upload.key,
        public_url=upload.public_url,
        content_type=upload.content_type,
        expires_in=upload.expires_in,
        headers=upload.headers,
    )
