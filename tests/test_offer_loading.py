import logging

import pytest

from apps.offers import services
from apps.offers.models import Offer
from apps.offers.types import BUNDLE


@pytest.fixture
def broken_threshold(foodtruck):
    return Offer.objects.create(
        foodtruck=foodtruck,
        name="Remise mal saisie",
        offer_type="threshold_discount",
        config={"min_amount": "15 euros", "discount_type": "fixed", "discount_value": 200},
        display_order=-1,
    )


@pytest.mark.django_db
def test_unreadable_offer_is_skipped_not_fatal(foodtruck, menu_bundle, broken_threshold, caplog):
    with caplog.at_level(logging.WARNING, logger="apps.offers.services"):
        offers = services.active_offers(foodtruck)
    assert [o.id for o in offers] == [str(menu_bundle.id)]
    assert offers[0].offer_type == BUNDLE
    assert f"skipping offer {broken_threshold.id}" in caplog.text


@pytest.mark.django_db
def test_discovery_keeps_good_offers_next_to_a_broken_one(foodtruck, menu_bundle, broken_threshold):
    assert [o.id for o in services.discover_offers(foodtruck)] == [str(menu_bundle.id)]


@pytest.mark.django_db
def test_promo_with_unreadable_config_is_invalid(foodtruck):
    Offer.objects.create(
        foodtruck=foodtruck,
        name="Promo cassée",
        offer_type="promo_code",
        config={"code": "casse", "discount_type": "fixed", "discount_value": "deux euros"},
    )
    result = services.validate_promo_code(foodtruck, "CASSE", "paul@example.com", 2000)
    assert not result.is_valid
    assert result.error == "Code promo invalide"
