"""Preference defaults, partial updates and input validation."""

import pytest
from pydantic import ValidationError

from app.models import DEFAULT_NOTIFICATION_CATEGORIES
from app.schemas.notification import PreferenceUpdate


async def test_defaults_created_lazily(service, user_id):
    assert await service.preference_repo.get_by_user_id(user_id) is None

    preference = await service.get_user_preferences(user_id)

    assert preference.categories == DEFAULT_NOTIFICATION_CATEGORIES
    assert preference.categories["newsletter"] is False
    assert preference.channel == "in_app"
    assert preference.quiet_hours_enabled is False
    assert preference.timezone == "UTC"
    assert preference.email_digest == "instant"


async def test_get_is_idempotent(service, user_id):
    first = await service.get_user_preferences(user_id)
    second = await service.get_user_preferences(user_id)

    assert first.id == second.id


async def test_categories_are_merged(service, user_id):
    await service.update_preferences(
        user_id, PreferenceUpdate(categories={"promotions": False})
    )
    preference = await service.update_preferences(
        user_id, PreferenceUpdate(categories={"newsletter": True})
    )

    assert preference.categories == {
        **DEFAULT_NOTIFICATION_CATEGORIES,
        "promotions": False,
        "newsletter": True,
    }


async def test_security_category_stays_enabled(service, user_id):
    preference = await service.update_preferences(
        user_id, PreferenceUpdate(categories={"security": False, "orders": False})
    )

    assert preference.categories["security"] is True
    assert preference.categories["orders"] is False


async def test_only_provided_fields_change(service, make_preference, user_id):
    await make_preference(
        user_id,
        quiet_hours_enabled=True,
        quiet_hours_start="22:00",
        quiet_hours_end="07:00",
        timezone="Europe/Berlin",
    )

    preference = await service.update_preferences(
        user_id, PreferenceUpdate(email_digest="weekly", channel="email")
    )

    assert preference.email_digest == "weekly"
    assert preference.channel == "email"
    assert preference.quiet_hours_enabled is True
    assert preference.quiet_hours_start == "22:00"
    assert preference.timezone == "Europe/Berlin"


async def test_quiet_hours_update(service, user_id):
    preference = await service.update_preferences(
        user_id,
        PreferenceUpdate(
            quiet_hours_enabled=True,
            quiet_hours_start="23:00",
            quiet_hours_end="06:30",
            timezone="America/New_York",
        ),
    )

    assert preference.quiet_hours_enabled is True
    assert preference.quiet_hours_start == "23:00"
    assert preference.quiet_hours_end == "06:30"
    assert preference.timezone == "America/New_York"


@pytest.mark.parametrize("clock", ["7:00", "24:00", "12:60", "noon", "12-30"])
def test_invalid_clock_rejected(clock):
    with pytest.raises(ValidationError):
        PreferenceUpdate(quiet_hours_start=clock)


def test_unknown_timezone_rejected():
    with pytest.raises(ValidationError):
        PreferenceUpdate(timezone="Mars/Olympus_Mons")


def test_unknown_digest_frequency_rejected():
    with pytest.raises(ValidationError):
        PreferenceUpdate(email_digest="hourly")


async def test_explicit_null_clears_quiet_hours_bounds(service, make_preference, user_id):
    await make_preference(
        user_id,
        quiet_hours_enabled=True,
        quiet_hours_start="22:00",
        quiet_hours_end="08:00",
    )

    preference = await service.update_preferences(
        user_id,
        PreferenceUpdate.model_validate({"quiet_hours_start": None, "quiet_hours_end": None}),
    )

    assert preference.quiet_hours_start is None
    assert preference.quiet_hours_end is None
    assert preference.quiet_hours_enabled is True


async def test_null_categories_keep_stored_toggles(service, make_preference, user_id):
    await make_preference(user_id, categories={**DEFAULT_NOTIFICATION_CATEGORIES, "reviews": False})

    preference = await service.update_preferences(
        user_id,
        PreferenceUpdate.model_validate({"categories": {"orders": None, "newsletter": True}}),
    )

    assert preference.categories["reviews"] is False
    assert preference.categories["orders"] is True
    assert preference.categories["newsletter"] is True


@pytest.mark.parametrize("field", ["channel", "quiet_hours_enabled", "timezone", "email_digest"])
def test_null_rejected_for_required_columns(field):
    with pytest.raises(ValidationError):
        PreferenceUpdate.model_validate({field: None})
