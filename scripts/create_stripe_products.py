"""Create Stripe products and prices in test mode.

Run once:
    python -m scripts.create_stripe_products

Outputs price IDs to set in .env:
    STRIPE_PRICE_TALENT_MONTHLY=price_xxx
    ...
    STRIPE_PRICE_BUNDLE_LIFETIME=price_xxx
"""

import asyncio

import stripe
from stripe import StripeClient

from billing_bridge.billing.plans import PLAN_LABEL, Billing, Plan
from billing_bridge.config import settings

# Amounts in cents
PRICES: dict[Plan, dict[Billing, int]] = {
    Plan.TALENT: {Billing.MONTHLY: 900, Billing.YEARLY: 9000, Billing.LIFETIME: 19900},
    Plan.NETWORKING: {Billing.MONTHLY: 900, Billing.YEARLY: 9000, Billing.LIFETIME: 19900},
    Plan.BUNDLE: {Billing.MONTHLY: 1500, Billing.YEARLY: 15000, Billing.LIFETIME: 29900},
}

_INTERVALS = {Billing.MONTHLY: "month", Billing.YEARLY: "year"}


async def main() -> None:
    if not settings.stripe_secret_key:
        print("ERROR: STRIPE_SECRET_KEY is not set in .env")
        return

    client = StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )

    env_lines: list[str] = []
    for plan, amounts in PRICES.items():
        product = await client.v1.products.create_async(
            params={"name": PLAN_LABEL[plan], "metadata": {"plan": plan.value}}
        )
        print(f"Created product: {product.name} ({product.id})")

        for billing, amount in amounts.items():
            params: dict = {
                "product": product.id,
                "unit_amount": amount,
                "currency": "usd",
                "metadata": {"plan": plan.value, "billing": billing.value},
            }
            if billing in _INTERVALS:
                params["recurring"] = {"interval": _INTERVALS[billing]}
            price = await client.v1.prices.create_async(params=params)
            print(f"  {billing.value}: ${amount / 100:.2f} ({price.id})")
            env_lines.append(
                f"{settings.price_setting_name(plan.value, billing.value)}={price.id}"
            )

    print("\n--- Add these to your .env ---")
    for line in env_lines:
        print(line)


if __name__ == "__main__":
    asyncio.run(main())
