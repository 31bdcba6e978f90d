"""
Runtime configuration

Everything is read from the environment. Secrets have no defaults: a missing
JWT_SECRET produces a random per-process key, missing gateway keys switch the
payment bridge to mock orders.
"""
import logging
import os
import secrets

logger = logging.getLogger(__name__)


DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "healthcare")

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    logger.warning("JWT_SECRET not set, using a random key; tokens will not survive a restart")
    JWT_SECRET = secrets.token_urlsafe(32)
JWT_ALG = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

COMPANY = {
    "name": os.getenv("COMPANY_NAME", "Raghuvanshi Healthcare"),
    "description": "Premium Healthcare Services",
    "logo": "/logo-healthcare-gold.png",
    "theme": "#004AAD",
}

# Multiplier on the simulated government lookup latency (0 disables it)
VERIFICATION_DELAY_SCALE = float(os.getenv("VERIFICATION_DELAY_SECONDS", 1.0))

LOGIN_MAX_ATTEMPTS = int(os.getenv("LOGIN_MAX_ATTEMPTS", 5))
LOGIN_LOCKOUT_MINUTES = int(os.getenv("LOGIN_LOCKOUT_MINUTES", 15))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))


def gateway_configured() -> bool:
    return bool(RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET)
