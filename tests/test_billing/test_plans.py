"""Tests for the plan catalogue and Stripe price lookup."""

import pytest

from billing_bridge.billing.plans import (
    Billing,
    Plan,
    checkout_mode,
    configured_prices,
    get_price_id,
    parse_billing,
    parse_plan,
)
from billing_bridge.config import settings
from billing_bridge.errors import ConfigurationFailure


class TestParsing:
    def test_known_values(self):
        assert parse_plan("bundle") is Plan.BUNDLE
        assert parse_billing("lifetime") is Billing.LIFETIME

    @pytest.mark.parametrize("value", ["weekly", "", None, 3, "MONTHLY"])
    def test_unknown_billing(self, value):
        assert parse_billing(value) is None

    @pytest.mark.parametrize("value", ["pro", "", None, "Talent"])
    def test_unknown_plan(self, value):
        assert parse_plan(value) is None


class TestCheckoutMode:
    def test_lifetime_is_one_time_payment(self):
        assert checkout_mode(Billing.LIFETIME) == "payment"

    @pytest.mark.parametrize("billing", [Billing.MONTHLY, Billing.YEARLY])
    def test_recurring_is_subscription(self, billing):
        assert checkout_mode(billing) == "subscription"


class TestPriceLookup:
    def test_configured_price(self):
        assert get_price_id(Plan.TALENT, Billing.YEARLY) == "price_talent_yearly"

    def test_missing_price_names_env_var(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_price_bundle_lifetime", "")
        with pytest.raises(ConfigurationFailure) as exc_info:
            get_price_id(Plan.BUNDLE, Billing.LIFETIME)
        assert exc_info.value.status_code == 500
        assert exc_info.value.details == {"missing_env": "STRIPE_PRICE_BUNDLE_LIFETIME"}

    def test_configured_prices_skips_unset(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_price_networking_monthly", "")
        options = configured_prices()
        assert len(options) == 8
        assert (Plan.NETWORKING, Billing.MONTHLY) not in {(o.plan, o.billing) for o in options}

    def test_option_label(self):
        option = configured_prices()[0]
        assert option.plan is Plan.TALENT
        assert option.billing is Billing.MONTHLY
        assert option.label == "Talent Pack — Monthly"
