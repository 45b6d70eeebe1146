"""Supabase-backed helpers shared by the API routes.

Covers token checks, captcha checks, the credits ledger, transaction
history and the saved-logo gallery.
"""
import os
import re
import uuid
import logging
from datetime import datetime
from functools import lru_cache

import requests
from dotenv import load_dotenv
from supabase import create_client, Client

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

SUPABASE_URL = os.getenv('SUPABASE_URL')
SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY')
HCAPTCHA_SECRET_KEY = os.getenv('HCAPTCHA_SECRET_KEY')
HCAPTCHA_VERIFY_URL = "https://api.hcaptcha.com/siteverify"

LOGOS_BUCKET = os.getenv('LOGOS_BUCKET', 'logos')
SIGNED_URL_TTL_SECONDS = 60
SIGNED_URL_QUALITY = 75

TRANSACTIONS_PAGE_SIZE = 10
MAX_TRANSACTIONS_PAGE_SIZE = 50
GENERATION_COST = 1

TRANSACTION_SPEND = "spend"
TRANSACTION_RECHARGE = "recharge"
TRANSACTION_FILTERS = ("all", TRANSACTION_SPEND, TRANSACTION_RECHARGE)


class AuthError(Exception):
    pass


class CaptchaError(Exception):
    pass


class InsufficientCreditsError(Exception):
    pass


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment variables")
    client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    logger.info("Supabase client initialized")
    return client


def slugify(text):
    text = (text or "").lower()
    text = re.sub(r'\s+', '-', text)
    text = re.sub(r'[^\w-]+', '', text)
    text = re.sub(r'--+', '-', text)
    return text.strip('-')


# Auth

def get_user_id_from_token(auth_header):
    """Validate a Supabase JWT from an Authorization header and return the user id"""
    if not auth_header or not auth_header.startswith("Bearer "):
        logger.warning("Auth header missing or invalid format")
        raise AuthError("Missing or invalid token")

    token = auth_header.split(" ", 1)[1].strip()
    try:
        user_response = get_supabase().auth.get_user(token)
    except Exception as e:
        logger.error(f"Error during token validation: {e.__class__.__name__}: {e}")
        raise AuthError("Token verification failed") from e

    user = getattr(user_response, 'user', None)
    if not user or not getattr(user, 'id', None):
        logger.warning("Token validation failed or user id missing")
        raise AuthError("User not found")

    return str(user.id)


def verify_captcha(token):
    """Check an hCaptcha response token, returns True when hCaptcha accepts it"""
    if not token or not HCAPTCHA_SECRET_KEY:
        raise CaptchaError("Missing token or secret key")

    response = requests.post(
        HCAPTCHA_VERIFY_URL,
        data={"secret": HCAPTCHA_SECRET_KEY, "response": token},
        timeout=10
    )
    result = response.json()
    if not result.get("success"):
        logger.warning(f"hCaptcha verification failed: {result.get('error-codes')}")
        return False
    return True


# Credits ledger

def get_credit_balance(user_id):
    # A missing row gives an empty response, or None on some postgrest releases
    response = get_supabase().table("user_credits").select("credits").eq("user_id", user_id).maybe_single().execute()
    if response is None or not response.data:
        raise LookupError(f"No credit balance for user {user_id}")
    return int(response.data.get("credits") or 0)


def ensure_credits(user_id, cost=GENERATION_COST):
    try:
        balance = get_credit_balance(user_id)
    except LookupError:
        balance = 0
    if balance <= 0 or balance < cost:
        logger.warning(f"User {user_id} has insufficient credits ({balance}) for cost {cost}")
        raise InsufficientCreditsError("Insufficient credits")
    return balance


def record_credit_transaction(user_id, transaction_type, amount, description, metadata=None):
    row = {
        "user_id": user_id,
        "transaction_type": transaction_type,
        "amount": amount,
        "description": description,
    }
    if metadata:
        row["metadata"] = metadata

    response = get_supabase().table("credit_transactions").insert([row]).execute()
    logger.info(f"Recorded {transaction_type} of {amount} credits for user {user_id}")
    return response.data


def charge_generation(user_id):
    """Spend one credit for a finished generation.

    A ledger failure is logged and does not fail the generation the user
    already received.
    """
    try:
        record_credit_transaction(user_id, TRANSACTION_SPEND, GENERATION_COST, "Logo generation")
        return True
    except Exception as e:
        logger.error(
            f"Error creating credit transaction: {str(e)} "
            f"User ID: {user_id} Date: {datetime.now().isoformat()}"
        )
        return False


# Transaction history

def list_transactions(user_id, page=0, limit=TRANSACTIONS_PAGE_SIZE):
    """One page of the user's credit transactions, newest first (page is 0-based)"""
    page = max(0, int(page))
    limit = max(1, min(int(limit), MAX_TRANSACTIONS_PAGE_SIZE))
    start = page * limit
    end = start + limit - 1

    response = (
        get_supabase().table("credit_transactions")
        .select("*", count="exact")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .range(start, end)
        .execute()
    )
    items = response.data or []
    total = response.count or 0
    logger.info(f"Transactions page {page} for user {user_id}: {len(items)} items (total {total})")

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": (page + 1) * limit < total,
    }


def filter_transactions(items, search="", kind="all"):
    """Search by id or description; a search term takes precedence over the kind filter"""
    if kind not in TRANSACTION_FILTERS:
        raise ValueError(f"Unknown transaction filter '{kind}'")

    query = (search or "").strip().lower()
    if query:
        return [
            item for item in items
            if query in str(item.get("id", "")).lower()
            or query in (item.get("description") or "").lower()
        ]

    if kind == "all":
        return list(items)
    return [item for item in items if item.get("transaction_type") == kind]


# Logo gallery

def build_logo_filename(brand_name):
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_id = str(uuid.uuid4())[:8]
    slug = slugify(brand_name) or "logo"
    return f"{slug}_{timestamp}_{unique_id}.svg"


def save_logo(user_id, svg_markup, brand_name, icon_description, font_style, font_family):
    """Upload a finished SVG to storage and record it in the user's history"""
    filename = build_logo_filename(brand_name)
    supabase = get_supabase()

    supabase.storage.from_(LOGOS_BUCKET).upload(
        filename,
        svg_markup.encode('utf-8'),
        {"content-type": "image/svg+xml"}
    )
    logger.info(f"Logo uploaded: {filename} for user {user_id}")

    response = supabase.table("logo_history").insert([{
        "user_id": user_id,
        "brand_name": brand_name,
        "prompt": icon_description,
        "font_style": font_style,
        "font_family": font_family,
        "url": filename,
    }]).execute()
    rows = response.data or []
    return rows[0] if rows else {"url": filename}


def create_signed_logo_url(path):
    object_name = path.split("/")[-1]
    signed = get_supabase().storage.from_(LOGOS_BUCKET).create_signed_url(
        object_name,
        SIGNED_URL_TTL_SECONDS,
        {"download": True, "transform": {"quality": SIGNED_URL_QUALITY}}
    )
    return signed.get("signedURL") or signed.get("signedUrl")


def list_logos(user_id):
    """The user's saved logos, each with a short-lived download URL"""
    response = get_supabase().table("logo_history").select("*").eq("user_id", user_id).execute()
    logos = []
    for logo in response.data or []:
        try:
            public_url = create_signed_logo_url(logo.get("url") or "")
        except Exception as e:
            logger.error(f"Error generating signed URL for logo {logo.get('id')}: {str(e)}")
            public_url = None
        logos.append({**logo, "public_url": public_url})
    return logos
