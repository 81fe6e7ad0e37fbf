"""Tests for mapping raw Stripe events onto typed variants."""

import json
from datetime import datetime, timezone

from stripe import StripeClient

from billing_bridge.billing.events import (
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    metadata_dict,
    parse_event,
    parse_metadata,
    subscription_period_end,
    ts_to_datetime,
)
from billing_bridge.billing.plans import Billing, Plan
from billing_bridge.billing.stripe_client import construct_webhook_event
from tests.conftest import make_event, sign_payload


class TestHelpers:
    def test_ts_to_datetime(self):
        result = ts_to_datetime(1700000000)
        assert result == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_ts_to_datetime_none(self):
        assert ts_to_datetime(None) is None

    def test_period_end_on_subscription(self):
        assert subscription_period_end({"current_period_end": 1700000000}) == ts_to_datetime(
            1700000000
        )

    def test_period_end_from_first_item(self):
        """Newer API versions carry the period on the subscription item."""
        sub = {"items": {"data": [{"current_period_end": 1702600000}]}}
        assert subscription_period_end(sub) == ts_to_datetime(1702600000)

    def test_period_end_missing(self):
        assert subscription_period_end({"items": {"data": []}}) is None

    def test_metadata_prefers_supabase_user_id(self):
        meta = parse_metadata(
            {"supabase_user_id": "u1", "user_id": "legacy", "plan": "talent", "billing": "yearly"}
        )
        assert meta.user_id == "u1"
        assert meta.plan is Plan.TALENT
        assert meta.billing is Billing.YEARLY

    def test_metadata_legacy_user_id(self):
        meta = parse_metadata({"user_id": "u2", "plan": "bundle", "billing": "lifetime"})
        assert meta.user_id == "u2"

    def test_metadata_invalid_plan(self):
        assert parse_metadata({"supabase_user_id": "u1", "plan": "pro", "billing": "monthly"}) is None

    def test_metadata_missing(self):
        assert parse_metadata(None) is None
        assert parse_metadata({}) is None


class TestParseEvent:
    def test_checkout_completed(self):
        event = make_event(
            "checkout.session.completed",
            {
                "id": "cs_1",
                "mode": "subscription",
                "customer": "cus_1",
                "subscription": "sub_1",
                "metadata": {"supabase_user_id": "u1", "plan": "networking", "billing": "monthly"},
            },
        )
        parsed = parse_event(event)
        assert isinstance(parsed, CheckoutCompleted)
        assert parsed.session_id == "cs_1"
        assert parsed.customer_id == "cus_1"
        assert parsed.subscription_id == "sub_1"
        assert parsed.metadata.plan is Plan.NETWORKING

    def test_checkout_completed_falls_back_to_client_reference_id(self):
        event = make_event(
            "checkout.session.completed",
            {
                "id": "cs_2",
                "mode": "payment",
                "client_reference_id": "u9",
                "metadata": {"plan": "bundle", "billing": "lifetime"},
            },
        )
        parsed = parse_event(event)
        assert parsed.metadata.user_id == "u9"
        assert parsed.subscription_id is None

    def test_checkout_completed_with_expanded_customer(self):
        event = make_event(
            "checkout.session.completed",
            {"id": "cs_3", "customer": {"id": "cus_exp"}, "metadata": {}},
        )
        parsed = parse_event(event)
        assert parsed.customer_id == "cus_exp"
        assert parsed.metadata is None

    def test_subscription_updated(self):
        event = make_event(
            "customer.subscription.updated",
            {
                "id": "sub_1",
                "customer": "cus_1",
                "status": "past_due",
                "items": {"data": [{"current_period_end": 1702600000}]},
                "metadata": {},
            },
        )
        parsed = parse_event(event)
        assert isinstance(parsed, SubscriptionChanged)
        assert parsed.status == "past_due"
        assert parsed.current_period_end == ts_to_datetime(1702600000)
        assert parsed.metadata is None

    def test_subscription_deleted(self):
        parsed = parse_event(make_event("customer.subscription.deleted", {"id": "sub_1"}))
        assert isinstance(parsed, SubscriptionDeleted)
        assert parsed.subscription_id == "sub_1"
        assert parsed.current_period_end is None

    def test_other_events_are_unhandled(self):
        parsed = parse_event(make_event("invoice.paid", {"id": "in_1"}, event_id="evt_9"))
        assert parsed == UnhandledEvent(event_id="evt_9", event_type="invoice.paid")


def _verified(event: dict):
    """Run an event through signature verification, as the endpoint does."""
    body = json.dumps(event)
    return construct_webhook_event(StripeClient("sk_test_dummy"), body.encode(), sign_payload(body))


class TestVerifiedEvents:
    """Events built by the Stripe SDK carry StripeObject payloads, not dicts."""

    def test_checkout_completed(self):
        event = _verified(
            make_event(
                "checkout.session.completed",
                {
                    "id": "cs_live",
                    "object": "checkout.session",
                    "mode": "payment",
                    "customer": "cus_1",
                    "subscription": None,
                    "metadata": {"supabase_user_id": "u1", "plan": "bundle", "billing": "lifetime"},
                },
            )
        )
        parsed = parse_event(event)

        assert isinstance(parsed, CheckoutCompleted)
        assert parsed.metadata.user_id == "u1"
        assert parsed.metadata.plan is Plan.BUNDLE
        assert parsed.metadata.billing is Billing.LIFETIME
        assert parsed.raw_metadata == {"supabase_user_id": "u1", "plan": "bundle", "billing": "lifetime"}
        assert type(parsed.raw_metadata) is dict

    def test_checkout_completed_client_reference_fallback(self):
        event = _verified(
            make_event(
                "checkout.session.completed",
                {
                    "id": "cs_ref",
                    "object": "checkout.session",
                    "mode": "subscription",
                    "client_reference_id": "u5",
                    "metadata": {"plan": "talent", "billing": "yearly"},
                },
            )
        )
        parsed = parse_event(event)

        assert parsed.metadata.user_id == "u5"
        assert parsed.metadata.billing is Billing.YEARLY
        assert parsed.raw_metadata == {"plan": "talent", "billing": "yearly"}

    def test_checkout_completed_without_metadata(self):
        event = _verified(
            make_event("checkout.session.completed", {"id": "cs_none", "object": "checkout.session"})
        )
        parsed = parse_event(event)
        assert parsed.metadata is None
        assert parsed.raw_metadata == {}

    def test_subscription_updated_with_item_period(self):
        event = _verified(
            make_event(
                "customer.subscription.updated",
                {
                    "id": "sub_1",
                    "object": "subscription",
                    "customer": "cus_1",
                    "status": "active",
                    "items": {
                        "object": "list",
                        "data": [{"object": "subscription_item", "current_period_end": 1702600000}],
                    },
                    "metadata": {"supabase_user_id": "u1", "plan": "networking", "billing": "monthly"},
                },
            )
        )
        parsed = parse_event(event)

        assert isinstance(parsed, SubscriptionChanged)
        assert parsed.current_period_end == ts_to_datetime(1702600000)
        assert parsed.metadata.plan is Plan.NETWORKING


def test_metadata_dict_copies_plain_mappings():
    source = {"plan": "talent"}
    copy = metadata_dict(source)
    assert copy == source
    assert copy is not source
    assert metadata_dict(None) == {}
