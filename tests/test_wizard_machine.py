import pytest

from marketplace.wizard import rules
from marketplace.wizard.machine import DraftFrozenError, InvalidMediaOrderError, ListingWizard, MediaNotFoundError
from marketplace.wizard.state import (
    ApartmentDetails,
    DraftStatus,
    HouseDetails,
    Location,
    MediaItem,
    RentPricing,
    SellPricing,
    WizardStep,
)

DESCRIPTION = "Sunny two bedroom apartment with a balcony, secure parking and fibre, close to the station."


def filled_wizard() -> ListingWizard:
    w = ListingWizard()
    w.set_action("rent")
    w.set_property_type("apartment")
    w.set_badges(["ready_to_move"])
    w.set_property_details(ApartmentDetails(bedrooms=2, bathrooms=1, unit_size_m2=78, property_settings="sectional_title"))
    w.set_basic_info(title="Modern 2 bed apartment in Sea Point", description=DESCRIPTION)
    w.set_pricing(RentPricing(monthly_rent=12000, deposit=12000))
    w.set_location(Location(address="12 Beach Road", city="Cape Town", province="Western Cape",
                            latitude=-33.91, longitude=18.39))
    w.add_media(MediaItem(url="https://cdn.test/a.jpg", mime_type="image/jpeg", file_size=1024))
    return w


def walk_to_preview(w: ListingWizard) -> None:
    for _ in range(int(WizardStep.PREVIEW) - 1):
        assert w.next_step() is True


def test_empty_draft_cannot_leave_first_step():
    w = ListingWizard()
    assert w.next_step() is False
    assert w.current_step == WizardStep.ACTION
    assert "action" in w.draft.errors


@pytest.mark.parametrize("step", [s for s in WizardStep if s not in (WizardStep.BADGES, WizardStep.PREVIEW)])
def test_next_step_blocks_on_missing_required_fields(step):
    w = ListingWizard()
    w.draft.current_step = int(step)
    assert w.next_step() is False
    assert w.current_step == step
    assert w.draft.errors


def test_full_walk_reaches_preview_and_completes_every_step():
    w = filled_wizard()
    walk_to_preview(w)
    assert w.current_step == WizardStep.PREVIEW
    # the last step completes but does not advance
    assert w.next_step() is False
    assert w.progress == 100
    assert w.max_reachable_step == int(WizardStep.PREVIEW)


def test_go_to_step_limited_to_reached_steps():
    w = filled_wizard()
    assert w.next_step() is True
    assert w.next_step() is True
    assert w.current_step == WizardStep.BADGES

    assert w.go_to_step(5) is False
    assert w.current_step == WizardStep.BADGES
    assert w.go_to_step(1) is True
    assert w.current_step == WizardStep.ACTION
    assert w.go_to_step(3) is True


def test_prev_step_always_allowed_except_on_first():
    w = filled_wizard()
    assert w.prev_step() is False
    w.next_step()
    assert w.prev_step() is True
    assert w.current_step == WizardStep.ACTION


def test_changing_action_clears_pricing():
    w = filled_wizard()
    w.set_action("sell")
    assert w.draft.pricing is None
    w.set_pricing(SellPricing(asking_price=2_500_000))
    assert rules.validate_step(w.draft, WizardStep.PRICING) == {}


def test_changing_property_type_clears_details():
    w = filled_wizard()
    w.set_property_type("house")
    assert w.draft.property_details is None
    w.set_property_details(HouseDetails(bedrooms=3, bathrooms=2, erf_size_m2=500, house_area_m2=220))
    assert rules.validate_step(w.draft, WizardStep.PROPERTY_DETAILS) == {}


def test_mismatched_pricing_variant_is_invalid():
    w = filled_wizard()
    w.set_pricing(SellPricing(asking_price=100))
    errors = rules.validate_step(w.draft, WizardStep.PRICING)
    assert errors == {"pricing": "Pricing does not match the selected listing type"}


def test_rent_requires_deposit():
    w = filled_wizard()
    w.set_pricing(RentPricing(monthly_rent=12000))
    assert "pricing.deposit" in rules.validate_step(w.draft, WizardStep.PRICING)


def test_first_media_becomes_primary_and_removal_promotes_next():
    w = ListingWizard()
    first = w.add_media(MediaItem(url="https://cdn.test/1.jpg"))
    second = w.add_media(MediaItem(url="https://cdn.test/2.jpg"))
    assert w.draft.main_media_id == first.id
    assert [m.is_primary for m in w.draft.media] == [True, False]

    w.remove_media(first.id)
    assert w.draft.main_media_id == second.id
    assert w.draft.media[0].display_order == 0
    assert w.draft.media[0].is_primary is True


def test_reorder_media_requires_every_id_once():
    w = ListingWizard()
    a = w.add_media(MediaItem(url="https://cdn.test/a.jpg"))
    b = w.add_media(MediaItem(url="https://cdn.test/b.jpg"))
    with pytest.raises(InvalidMediaOrderError):
        w.reorder_media([a.id])
    w.reorder_media([b.id, a.id])
    assert [m.id for m in w.draft.media] == [b.id, a.id]
    assert [m.display_order for m in w.draft.media] == [0, 1]


def test_unknown_media_id_raises():
    w = ListingWizard()
    with pytest.raises(MediaNotFoundError):
        w.set_primary_media("med_missing")


def test_oversized_image_is_rejected():
    item = MediaItem(url="https://cdn.test/big.jpg", mime_type="image/jpeg", file_size=rules.IMAGE_MAX_BYTES + 1)
    assert rules.media_item_error(item) == "Images must be 5MB or smaller"


def test_long_video_is_rejected():
    item = MediaItem(url="https://cdn.test/v.mp4", media_type="video", mime_type="video/mp4", duration_seconds=181)
    assert rules.media_item_error(item) == "Videos must be 3 minutes or shorter"


def test_readiness_score_counts_valid_content_steps():
    assert rules.readiness_score(ListingWizard().draft) == 12  # badges are optional
    assert rules.readiness_score(filled_wizard().draft) == 100


def test_state_round_trips_through_json():
    w = filled_wizard()
    walk_to_preview(w)
    restored = ListingWizard.from_state(w.to_state())
    assert restored.draft == w.draft


@pytest.mark.asyncio
async def test_submit_incomplete_draft_reports_errors_without_calling_submitter():
    called = []

    async def submitter(draft):
        called.append(draft)
        return "lst_x"

    w = ListingWizard()
    w.set_action("rent")
    result = await w.submit_for_review(submitter)
    assert result.ok is False
    assert result.error == "Step 2 is incomplete"
    assert "property_type" in result.errors
    assert called == []
    assert w.draft.status == DraftStatus.DRAFT


@pytest.mark.asyncio
async def test_submit_freezes_draft():
    async def submitter(draft):
        assert draft.status == DraftStatus.SUBMITTING
        return "lst_123"

    w = filled_wizard()
    result = await w.submit_for_review(submitter)
    assert result.ok is True
    assert result.listing_id == "lst_123"
    assert w.is_frozen
    assert w.draft.status == DraftStatus.SUBMITTED
    assert w.current_step == WizardStep.PREVIEW

    with pytest.raises(DraftFrozenError):
        w.set_basic_info(title="A different title entirely")


@pytest.mark.asyncio
async def test_failed_submit_restores_previous_state():
    async def submitter(draft):
        raise RuntimeError("database unavailable")

    w = filled_wizard()
    before = w.draft.model_copy(deep=True)
    result = await w.submit_for_review(submitter)
    assert result.ok is False
    assert result.error == "database unavailable"
    assert isinstance(result.cause, RuntimeError)
    assert w.draft == before
    assert not w.is_frozen


@pytest.mark.asyncio
async def test_save_draft_records_listing_id():
    async def writer(draft):
        return "lst_saved"

    w = ListingWizard()
    result = await w.save_draft(writer)
    assert result.ok is True
    assert w.draft.listing_id == "lst_saved"
