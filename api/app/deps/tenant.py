"""Dependency helpers for tenant resolution."""

from fastapi import Depends

from ..auth import CurrentRestaurant, get_current_restaurant


def get_tenant_id(
    restaurant: CurrentRestaurant = Depends(get_current_restaurant),
) -> str:
    """Return the authenticated restaurant's id.

    Staff routes scope every order query by this id; guest routes do not use
    it.
    """
    return restaurant.id
