from marketplace.models.base import Base  # noqa: F401

from marketplace.models.agency import Agency  # noqa: F401
from marketplace.models.user import User  # noqa: F401
from marketplace.models.api_key import ApiKey  # noqa: F401
from marketplace.models.invitation import Invitation  # noqa: F401
from marketplace.models.brand_profile import BrandProfile  # noqa: F401
from marketplace.models.listing import Listing  # noqa: F401
from marketplace.models.listing_media import ListingMedia  # noqa: F401
from marketplace.models.listing_draft import ListingDraftSession  # noqa: F401
from marketplace.models.approval_queue import ApprovalQueueEntry  # noqa: F401
from marketplace.models.developer import Developer, DeveloperSubscription  # noqa: F401
from marketplace.models.development import Development, DevelopmentUnit  # noqa: F401
from marketplace.models.developer_lead import DeveloperLead  # noqa: F401
from marketplace.models.activity import Activity  # noqa: F401
from marketplace.models.plan import Plan  # noqa: F401
from marketplace.models.subscription import AgencySubscription  # noqa: F401
from marketplace.models.invoice import Invoice  # noqa: F401
from marketplace.models.webhook_event import WebhookEvent  # noqa: F401
from marketplace.models.outbox import OutboxEvent  # noqa: F401
from marketplace.models.audit_log import AuditLog  # noqa: F401
