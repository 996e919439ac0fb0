from fastapi import APIRouter

from marketplace.api.v1.endpoints.health import router as health_router
from marketplace.api.v1.endpoints.me import router as me_router
from marketplace.api.v1.endpoints.users import router as users_router
from marketplace.api.v1.endpoints.wizard import router as wizard_router
from marketplace.api.v1.endpoints.listings import router as listings_router
from marketplace.api.v1.endpoints.public_listings import router as public_listings_router
from marketplace.api.v1.endpoints.uploads import router as uploads_router
from marketplace.api.v1.endpoints.approvals import router as approvals_router
from marketplace.api.v1.endpoints.developer import router as developer_router
from marketplace.api.v1.endpoints.public_developments import router as public_developments_router
from marketplace.api.v1.endpoints.brand_emulator import router as brand_emulator_router
from marketplace.api.v1.endpoints.billing import router as billing_router
from marketplace.api.v1.endpoints.webhooks import router as webhooks_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(me_router, tags=["me"])
router.include_router(users_router, tags=["users"])
router.include_router(wizard_router, tags=["wizard"])
router.include_router(listings_router, tags=["listings"])
router.include_router(public_listings_router, tags=["public"])
router.include_router(uploads_router, tags=["uploads"])
router.include_router(approvals_router, tags=["admin"])
router.include_router(developer_router, tags=["developer"])
router.include_router(public_developments_router, tags=["public"])
router.include_router(brand_emulator_router, tags=["brand-emulator"])
router.include_router(billing_router, tags=["billing"])
router.include_router(webhooks_router, tags=["webhooks"])
