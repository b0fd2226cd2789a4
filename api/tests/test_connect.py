from decimal import Decimal

import pytest

from api.app.domain import Conflict, NotFound, ValidationFailure
from api.app.repos_sqlalchemy import restaurants_repo_sql
from api.app.services import connect

pytestmark = pytest.mark.anyio


async def test_onboarding_creates_account_and_link(session, gateway, seed, settings):
    result = await connect.start_onboarding(session, gateway, seed.restaurant_id, settings)

    assert result["account_id"].startswith("acct_stub_")
    assert "return_url=http://testserver/dashboard/payments/success" in result["onboarding_url"]
    restaurant = await restaurants_repo_sql.get_restaurant(session, seed.restaurant_id)
    assert restaurant.stripe_account_id == result["account_id"]
    assert restaurant.stripe_onboarded is False

    with pytest.raises(Conflict):
        await connect.start_onboarding(session, gateway, seed.restaurant_id, settings)


async def test_status_tracks_onboarding(session, gateway, seed, settings):
    assert await connect.account_status(session, gateway, seed.restaurant_id) == {
        "has_account": False,
        "onboarded": False,
    }
    account_id = (
        await connect.start_onboarding(session, gateway, seed.restaurant_id, settings)
    )["account_id"]

    pending = await connect.account_status(session, gateway, seed.restaurant_id)
    assert pending["has_account"] is True
    assert pending["onboarded"] is False

    gateway.complete_onboarding(account_id)
    done = await connect.account_status(session, gateway, seed.restaurant_id)
    assert done["onboarded"] is True
    assert done["charges_enabled"] and done["payouts_enabled"] and done["details_submitted"]
    restaurant = await restaurants_repo_sql.get_restaurant(session, seed.restaurant_id)
    assert restaurant.stripe_onboarded is True


async def test_status_clears_revoked_account(session, gateway, seed, settings):
    account_id = (
        await connect.start_onboarding(session, gateway, seed.restaurant_id, settings)
    )["account_id"]
    gateway.revoked.add(account_id)

    result = await connect.account_status(session, gateway, seed.restaurant_id)

    assert result == {
        "has_account": False,
        "onboarded": False,
        "message": connect.ACCOUNT_RESET_MESSAGE,
    }
    restaurant = await restaurants_repo_sql.get_restaurant(session, seed.restaurant_id)
    assert restaurant.stripe_account_id is None


@pytest.mark.parametrize("value, stored", [(2.5, Decimal("2.50")), ("0", Decimal("0.00")), (100, Decimal("100.00"))])
async def test_platform_fee_is_stored(session, seed, value, stored):
    assert await connect.set_platform_fee(session, seed.restaurant_id, value) == stored
    restaurant = await restaurants_repo_sql.get_restaurant(session, seed.restaurant_id)
    assert restaurant.platform_fee_percent == stored


@pytest.mark.parametrize("value", [-1, 100.5, "abc", "NaN"])
async def test_platform_fee_out_of_range(session, seed, value):
    with pytest.raises(ValidationFailure):
        await connect.set_platform_fee(session, seed.restaurant_id, value)


async def test_unknown_restaurant(session, gateway):
    with pytest.raises(NotFound):
        await connect.account_status(session, gateway, "missing")
