"""Plan catalogue — plans, billing intervals, labels and Stripe price lookup."""

from dataclasses import dataclass
from enum import Enum

from billing_bridge.config import Settings, settings
from billing_bridge.errors import ConfigurationFailure


class Plan(str, Enum):
    """Purchasable feature packs."""

    TALENT = "talent"
    NETWORKING = "networking"
    BUNDLE = "bundle"


class Billing(str, Enum):
    """Billing intervals. Lifetime is a one-time payment."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


PLAN_LABEL: dict[Plan, str] = {
    Plan.TALENT: "Talent Pack",
    Plan.NETWORKING: "Networking Pack",
    Plan.BUNDLE: "Bundle (Talent + Networking)",
}

BILLING_LABEL: dict[Billing, str] = {
    Billing.MONTHLY: "Monthly",
    Billing.YEARLY: "Yearly",
    Billing.LIFETIME: "Lifetime",
}

VALID_PLAN_NAMES: set[str] = {p.value for p in Plan}
VALID_BILLING_NAMES: set[str] = {b.value for b in Billing}

# Shown to clients on a rejected checkout payload
EXPECTED_CHECKOUT_VALUES: dict[str, str] = {
    "plan": "|".join(p.value for p in Plan),
    "billing": "|".join(b.value for b in Billing),
}


@dataclass(frozen=True)
class PriceOption:
    """A (plan, billing) combination with its configured Stripe price."""

    plan: Plan
    billing: Billing
    price_id: str

    @property
    def label(self) -> str:
        return f"{PLAN_LABEL[self.plan]} — {BILLING_LABEL[self.billing]}"


def parse_plan(value: object) -> Plan | None:
    """Return the Plan for a raw value, or None if it is not a known plan."""
    if isinstance(value, str) and value in VALID_PLAN_NAMES:
        return Plan(value)
    return None


def parse_billing(value: object) -> Billing | None:
    """Return the Billing for a raw value, or None if it is not a known interval."""
    if isinstance(value, str) and value in VALID_BILLING_NAMES:
        return Billing(value)
    return None


def checkout_mode(billing: Billing) -> str:
    """Stripe Checkout mode: one-time payment for lifetime, subscription otherwise."""
    return "payment" if billing is Billing.LIFETIME else "subscription"


def get_price_id(plan: Plan, billing: Billing, config: Settings = settings) -> str:
    """Resolve the Stripe price ID for a (plan, billing) pair.

    Raises:
        ConfigurationFailure: If no price is configured for the combination.
    """
    price_id = config.price_id(plan.value, billing.value)
    if price_id is None:
        env_name = config.price_setting_name(plan.value, billing.value)
        raise ConfigurationFailure(
            "No Stripe price found for this option. Check env vars.",
            details={"missing_env": env_name},
        )
    return price_id


def configured_prices(config: Settings = settings) -> list[PriceOption]:
    """All (plan, billing) combinations that have a configured price, in catalogue order."""
    options: list[PriceOption] = []
    for plan in Plan:
        for billing in Billing:
            price_id = config.price_id(plan.value, billing.value)
            if price_id:
                options.append(PriceOption(plan=plan, billing=billing, price_id=price_id))
    return options
