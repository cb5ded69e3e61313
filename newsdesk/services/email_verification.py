# newsdesk/services/email_verification.py

import logging
import re
from typing import Any, Dict

import httpx

from newsdesk.config import ABSTRACT_API_KEY

logger = logging.getLogger(__name__)

ABSTRACT_API_URL = "https://emailvalidation.abstractapi.com/v1/"
EVA_API_URL = "https://api.eva.pingutil.com/email"
VERIFY_TIMEOUT = 5  # seconds; verification must never stall a signup

EMAIL_REGEX = re.compile(r"^[\w+\-.]+@[a-z\d\-.]+\.[a-z]+$", re.IGNORECASE)

DISPOSABLE_EMAIL_DOMAINS = {
    "10minutemail.com", "tempmail.com", "guerrillamail.com", "mailinator.com",
    "yopmail.com", "sharklasers.com", "throwawaymail.com", "getairmail.com",
    "tempail.com", "dispostable.com", "mailnesia.com", "mytemp.email",
    "temp-mail.org", "fake-email.com", "getnada.com", "tempinbox.com",
    "burnermail.io", "temp-mail.io", "spamgourmet.com", "trashmail.com",
    "tempr.email", "emailondeck.com", "mintemail.com", "maildrop.cc",
    "fakeinbox.com", "mailnull.com", "emailfake.com",
}

SUSPICIOUS_DOMAIN_WORDS = ("example", "test", "fake", "invalid")

SUSPICIOUS_EMAIL_PATTERNS = [
    re.compile(r"test.*@", re.IGNORECASE),
    re.compile(r"user.*@", re.IGNORECASE),
    re.compile(r"sample.*@", re.IGNORECASE),
    re.compile(r"example.*@", re.IGNORECASE),
    re.compile(r"[0-9]{8,}.*@", re.IGNORECASE),
    re.compile(r"^(abc|xyz|123|qwerty|asdf).*@", re.IGNORECASE),
    re.compile(r"^(?:john|jane)\.?doe.*@", re.IGNORECASE),
]


def _domain(email: str) -> str:
    return email.split("@")[-1].lower()


def is_disposable_email(email: str) -> bool:
    return _domain(email) in DISPOSABLE_EMAIL_DOMAINS


def validate_email_locally(email: str) -> Dict[str, Any]:
    """
    Offline checks run on every registration.
    Returns {"isValid": bool, "message": str}.
    """
    if not EMAIL_REGEX.match(email):
        return {"isValid": False, "message": "Invalid email format"}

    if is_disposable_email(email):
        return {"isValid": False, "message": "Disposable emails are not allowed"}

    if any(word in _domain(email) for word in SUSPICIOUS_DOMAIN_WORDS):
        return {"isValid": False, "message": "Email domain appears to be invalid"}

    for pattern in SUSPICIOUS_EMAIL_PATTERNS:
        if pattern.search(email):
            return {"isValid": False, "message": "This email appears to be invalid or suspicious"}

    return {"isValid": True, "message": ""}


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=VERIFY_TIMEOUT)


async def verify_with_abstract_api(email: str) -> Dict[str, Any]:
    """
    Abstract API email validation.
    deliverability: DELIVERABLE | UNDELIVERABLE | RISKY | UNKNOWN
    """
    if not ABSTRACT_API_KEY:
        logger.warning("Abstract API key not configured; skipping")
        return {"success": False, "reason": "API key not configured"}

    try:
        async with _http_client() as client:
            resp = await client.get(
                ABSTRACT_API_URL,
                params={"api_key": ABSTRACT_API_KEY, "email": email},
            )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Abstract API verification error: %s", e)
        return {"success": False, "reason": "API error", "error": str(e)}

    deliverable = (
        data.get("deliverability") == "DELIVERABLE"
        and (data.get("is_valid_format") or {}).get("value", False)
    )
    result = {
        "success": True,
        "deliverable": deliverable,
        "score": float(data.get("quality_score") or 0),
        "isDisposable": (data.get("is_disposable_email") or {}).get("value", False),
        "isFreeEmail": (data.get("is_free_email") or {}).get("value", False),
    }
    if not deliverable:
        result["reason"] = data.get("deliverability")
    return result


async def verify_with_eva(email: str) -> Dict[str, Any]:
    """EVA, a free fallback used when Abstract API is unavailable."""
    try:
        async with _http_client() as client:
            resp = await client.get(EVA_API_URL, params={"email": email})
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("EVA verification error: %s", e)
        return {"success": False, "reason": "API error", "error": str(e)}

    if data.get("status") != "success":
        return {"success": False, "reason": "API error", "error": data.get("message") or "Unknown error"}

    info = data.get("data") or {}
    deliverable = info.get("deliverable") is True
    return {
        "success": True,
        "deliverable": deliverable,
        "score": 0.8 if deliverable else 0.2,
        "isDisposable": bool(info.get("disposable")),
        "isFreeEmail": bool(info.get("free")),
    }


async def verify_email_exists(email: str) -> Dict[str, Any]:
    """
    Ask the verification services in order: Abstract API (if configured),
    then EVA. When neither answers, the address is accepted unverified.
    """
    if ABSTRACT_API_KEY:
        result = await verify_with_abstract_api(email)
        if result["success"]:
            return result

    result = await verify_with_eva(email)
    if result["success"]:
        return result

    return {
        "success": False,
        "deliverable": True,
        "score": 0.5,
        "apiVerified": False,
        "reason": "verification unavailable",
    }
