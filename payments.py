"""Stripe checkout for credit packs and the webhook that books them."""
import os
import json
import logging

import stripe
from dotenv import load_dotenv

from shared_functions import (
    get_supabase,
    record_credit_transaction,
    TRANSACTION_RECHARGE,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
APP_URL = os.getenv('APP_URL', 'http://localhost:3000').rstrip('/')
CHECKOUT_CURRENCY = "usd"

stripe.api_key = STRIPE_SECRET_KEY


class PaymentError(Exception):
    pass


class PaymentConfigError(PaymentError):
    """Stripe keys or webhook secret are missing."""


def list_products():
    """Credit packs on sale, smallest first"""
    response = get_supabase().table("products").select("*").order("credits").execute()
    return response.data or []


def get_product(plan_slug):
    response = get_supabase().table("products").select("*").eq("slug", plan_slug).limit(1).execute()
    rows = response.data or []
    if not rows:
        raise PaymentError(f"Unknown plan '{plan_slug}'")
    return rows[0]


def create_checkout_session(user_id, plan_slug):
    """Create a Stripe Checkout session for a credit pack.

    Price and credits come from the products table, never from the client.
    """
    if not stripe.api_key:
        raise PaymentConfigError("Payment system not configured")

    product = get_product(plan_slug)
    credits = int(product["credits"])
    # products.price is stored in cents, as Stripe expects
    unit_amount = int(product["price"])

    session = stripe.checkout.Session.create(
        payment_method_types=["card"],
        line_items=[{
            "price_data": {
                "currency": CHECKOUT_CURRENCY,
                "product_data": {"name": f"{credits} credits"},
                "unit_amount": unit_amount,
            },
            "quantity": 1,
        }],
        mode="payment",
        success_url=f"{APP_URL}/?success-purchase=true",
        cancel_url=f"{APP_URL}/",
        metadata={"userId": str(user_id), "credits": str(credits)},
    )
    logger.info(f"Stripe session created: {session.id} for user {user_id} ({credits} credits)")
    return {"sessionId": session.id, "url": getattr(session, "url", None)}


def handle_stripe_event(payload, signature):
    """Verify a webhook delivery and book credits for completed checkouts.

    Returns the event type. Raises ``ValueError`` or
    ``stripe.SignatureVerificationError`` for deliveries that fail
    verification and ``PaymentError`` for completed sessions without a user.
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise PaymentConfigError("Webhook secret not configured")

    # construct_event verifies the signature; the booking works on plain dicts
    stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    event = json.loads(payload)
    event_type = event.get("type")
    logger.info(f"Webhook verified. Type: {event_type}")

    if event_type != "checkout.session.completed":
        logger.info(f"Unhandled event type: {event_type}")
        return event_type

    session = event["data"]["object"]
    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId")
    if not user_id:
        logger.error(f"Missing user ID in metadata for session {session.get('id')}")
        raise PaymentError("Missing user ID")

    credits = int(metadata.get("credits") or 0)
    amount_paid = (session.get("amount_total") or 0) / 100

    record_credit_transaction(
        user_id,
        TRANSACTION_RECHARGE,
        credits,
        "Stripe checkout recharge",
        metadata={"stripeSessionId": session.get("id")},
    )
    logger.info(f"User {user_id} credited {credits} credits ({amount_paid} USD) via Stripe checkout")
    return event_type


def verify_payment(session_id):
    """Report whether a checkout session was paid and how many credits it carries"""
    if not session_id:
        raise PaymentError("Missing session id")

    session = stripe.checkout.Session.retrieve(session_id)
    if session.payment_status != "paid":
        return {"success": False, "message": "Payment not completed"}

    metadata = session.metadata or {}
    return {"success": True, "creditsAdded": int(metadata["credits"]) if "credits" in metadata else 0}
