from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _jsonb(default: str = "'{}'::jsonb"):
    return dict(type_=postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text(default))


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def upgrade():
    op.create_table(
        "agencies",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("subscription_plan", sa.String(length=50), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(length=30), nullable=False, server_default="inactive"),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True, unique=True),
        sa.Column("last_checkout_session_id", sa.String(length=200), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="user"),
        sa.Column("agency_id", sa.String(), sa.ForeignKey("agencies.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    op.create_index("ix_users_agency_id", "users", ["agency_id"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("key_prefix", sa.String(length=16), nullable=False),
        sa.Column("key_hash", sa.Text(), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("rotated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])
    op.create_index("ix_api_keys_key_prefix", "api_keys", ["key_prefix"])

    op.create_table(
        "agency_invitations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("agency_id", sa.String(), sa.ForeignKey("agencies.id"), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="agent"),
        sa.Column("token", sa.String(length=100), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("invited_by", sa.String(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_agency_invitations_agency_id", "agency_invitations", ["agency_id"])

    op.create_table(
        "brand_profiles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("brand_name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("identity_type", sa.String(length=20), nullable=False, server_default="developer"),
        sa.Column("brand_tier", sa.String(length=20), nullable=False, server_default="regional"),
        sa.Column("owner_type", sa.String(length=20), nullable=False, server_default="platform"),
        sa.Column("logo_url", sa.String(length=1000), nullable=True),
        sa.Column("about", sa.Text(), nullable=True),
        sa.Column("headquarters", sa.String(length=255), nullable=True),
        sa.Column("contact_email", sa.String(length=320), nullable=True),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("agency_id", sa.String(), sa.ForeignKey("agencies.id"), nullable=True),
        sa.Column("brand_profile_id", sa.String(), sa.ForeignKey("brand_profiles.id"), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=True),
        sa.Column("property_type", sa.String(length=30), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("badges", **_jsonb("'[]'::jsonb")),
        sa.Column("property_details", **_jsonb()),
        sa.Column("pricing", **_jsonb()),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("suburb", sa.String(length=120), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("province", sa.String(length=120), nullable=True),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("place_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("approval_status", sa.String(length=20), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("readiness_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_publish", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
    )
    op.create_index("ix_listings_owner_user_id", "listings", ["owner_user_id"])
    op.create_index("ix_listings_brand_profile_id", "listings", ["brand_profile_id"])
    op.create_index("ix_listings_city", "listings", ["city"])
    op.create_index("ix_listings_status", "listings", ["status"])

    op.create_table(
        "listing_media",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("media_type", sa.String(length=20), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=True),
        sa.Column("url", sa.String(length=1000), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processing_status", sa.String(length=20), nullable=False, server_default="pending"),
        *_audit_columns(),
    )
    op.create_index("ix_listing_media_listing_id", "listing_media", ["listing_id"])

    op.create_table(
        "listing_drafts",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("listings.id"), nullable=True),
        sa.Column("state", **_jsonb()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        *_audit_columns(),
    )
    op.create_index("ix_listing_drafts_owner_user_id", "listing_drafts", ["owner_user_id"])

    op.create_table(
        "listing_approval_queue",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("submitted_by", sa.String(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="normal"),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("compliance_checks", **_jsonb()),
        sa.Column("submission_count", sa.Integer(), nullable=False, server_default="1"),
        *_audit_columns(),
    )
    op.create_index("ix_listing_approval_queue_listing_id", "listing_approval_queue", ["listing_id"])
    # one open entry per listing
    op.create_index(
        "uq_approval_queue_open_listing",
        "listing_approval_queue",
        ["listing_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'reviewing')"),
    )

    op.create_table(
        "developers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("brand_profile_id", sa.String(), sa.ForeignKey("brand_profiles.id"), nullable=True),
        sa.Column("kpi_cache", **_jsonb()),
        sa.Column("last_kpi_calculation", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "developer_subscriptions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("developer_id", sa.String(), sa.ForeignKey("developers.id"), nullable=False, unique=True),
        sa.Column("tier", sa.String(length=20), nullable=False, server_default="free_trial"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "developments",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("developer_id", sa.String(), sa.ForeignKey("developers.id"), nullable=True),
        sa.Column("brand_profile_id", sa.String(), sa.ForeignKey("brand_profiles.id"), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("development_type", sa.String(length=30), nullable=False, server_default="residential"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("province", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="planning"),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("price_from", sa.Float(), nullable=True),
        sa.Column("price_to", sa.Float(), nullable=True),
        sa.Column("total_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amenities", **_jsonb("'[]'::jsonb")),
        *_audit_columns(),
    )
    op.create_index("ix_developments_developer_id", "developments", ["developer_id"])
    op.create_index("ix_developments_brand_profile_id", "developments", ["brand_profile_id"])

    op.create_table(
        "development_units",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("development_id", sa.String(), sa.ForeignKey("developments.id"), nullable=False),
        sa.Column("unit_number", sa.String(length=50), nullable=False),
        sa.Column("unit_type", sa.String(length=50), nullable=True),
        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("development_id", "unit_number", name="uq_development_unit_number"),
    )
    op.create_index("ix_development_units_development_id", "development_units", ["development_id"])

    op.create_table(
        "developer_leads",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("developer_id", sa.String(), sa.ForeignKey("developers.id"), nullable=True),
        sa.Column("brand_profile_id", sa.String(), sa.ForeignKey("brand_profiles.id"), nullable=True),
        sa.Column("development_id", sa.String(), sa.ForeignKey("developments.id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="website"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="new"),
        sa.Column("affordability_match", sa.Float(), nullable=True),
        sa.Column("qualified_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_developer_leads_developer_id", "developer_leads", ["developer_id"])
    op.create_index("ix_developer_leads_brand_profile_id", "developer_leads", ["brand_profile_id"])
    op.create_index("ix_developer_leads_development_id", "developer_leads", ["development_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("developer_id", sa.String(), sa.ForeignKey("developers.id"), nullable=False),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", **_jsonb()),
        sa.Column("related_entity_type", sa.String(length=30), nullable=True),
        sa.Column("related_entity_id", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_activities_developer_id", "activities", ["developer_id"])
    op.create_index("ix_activities_created_at", "activities", ["created_at"])

    op.create_table(
        "plans",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("interval", sa.String(length=10), nullable=False, server_default="month"),
        sa.Column("stripe_price_id", sa.String(length=120), nullable=True, unique=True),
        sa.Column("features", **_jsonb("'[]'::jsonb")),
        sa.Column("limits", **_jsonb()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_audit_columns(),
    )

    op.create_table(
        "agency_subscriptions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("agency_id", sa.String(), sa.ForeignKey("agencies.id"), nullable=False),
        sa.Column("plan_id", sa.String(), sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(length=120), nullable=True, unique=True),
        sa.Column("stripe_price_id", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="incomplete"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_agency_subscriptions_agency_id", "agency_subscriptions", ["agency_id"])
    op.create_index("ix_agency_subscriptions_stripe_customer_id", "agency_subscriptions", ["stripe_customer_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("agency_id", sa.String(), sa.ForeignKey("agencies.id"), nullable=False),
        sa.Column("subscription_id", sa.String(), sa.ForeignKey("agency_subscriptions.id"), nullable=True),
        sa.Column("stripe_invoice_id", sa.String(length=120), nullable=False, unique=True),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True),
        sa.Column("amount_due", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amount_paid", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="ZAR"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("number", sa.String(length=100), nullable=True),
        sa.Column("hosted_invoice_url", sa.String(length=1000), nullable=True),
        sa.Column("invoice_pdf", sa.String(length=1000), nullable=True),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_invoices_agency_id", "invoices", ["agency_id"])

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("provider", sa.String(length=30), nullable=False, server_default="stripe"),
        sa.Column("event_id", sa.String(length=200), nullable=False, unique=True),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("idempotency_key", sa.String(length=200), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("payload", **_jsonb()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "outbox",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("aggregate_type", sa.String(length=100), nullable=False),
        sa.Column("aggregate_id", sa.String(length=100), nullable=False),
        sa.Column("event_type", sa.String(length=200), nullable=False),
        sa.Column("payload", **_jsonb()),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lease_id", sa.String(length=64), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_outbox_status_next_attempt", "outbox", ["status", "next_attempt_at"])
    op.create_index("ix_outbox_lease_expires_at", "outbox", ["lease_expires_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("actor_user_id", sa.String(), nullable=True),
        sa.Column("actor_api_key_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("target_type", sa.String(length=120), nullable=True),
        sa.Column("target_id", sa.String(length=200), nullable=True),
        sa.Column("detail", **_jsonb()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade():
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_outbox_lease_expires_at", table_name="outbox")
    op.drop_index("ix_outbox_status_next_attempt", table_name="outbox")
    op.drop_table("outbox")
    op.drop_table("webhook_events")
    op.drop_table("invoices")
    op.drop_table("agency_subscriptions")
    op.drop_table("plans")
    op.drop_table("activities")
    op.drop_table("developer_leads")
    op.drop_table("development_units")
    op.drop_table("developments")
    op.drop_table("developer_subscriptions")
    op.drop_table("developers")
    op.drop_index("uq_approval_queue_open_listing", table_name="listing_approval_queue")
    op.drop_table("listing_approval_queue")
    op.drop_table("listing_drafts")
    op.drop_table("listing_media")
    op.drop_table("listings")
    op.drop_table("brand_profiles")
    op.drop_table("agency_invitations")
    op.drop_table("api_keys")
    op.drop_table("users")
    op.drop_table("agencies")
