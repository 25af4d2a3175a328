"""Application settings.

Everything is read from the process environment. A local `.env` file is
loaded first so development setups don't need exported variables.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

# Document store
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/shophub")
DATABASE_NAME = os.getenv("DATABASE_NAME", "shophub")

# Stripe payment integration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
CURRENCY = os.getenv("CURRENCY", "usd")

# JWT Config
JWT_SECRET = os.getenv("JWT_SECRET", "secret")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

# HTTP
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:3000")
PORT = int(os.getenv("PORT", 5000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Collection page sizes
PRODUCT_PAGE_SIZE = 50
ORDER_PAGE_SIZE = 100


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
