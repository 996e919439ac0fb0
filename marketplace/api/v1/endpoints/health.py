from fastapi import APIRouter

from marketplace.core.config import settings

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.service_name,
        "integrations": {
            "stripe": settings.stripe_configured,
            "s3": settings.s3_configured,
            "email": settings.email_provider,
        },
    }
