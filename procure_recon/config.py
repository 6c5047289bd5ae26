"""
Configuration for the procurement reconciliation engine.
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import os
from decimal import Decimal, InvalidOperation
from typing import Dict


def _parse_weights(raw: str) -> Dict[str, Decimal]:
    """Parse 'punctuality=30,conformity=30,...' into a weight mapping."""
    weights: Dict[str, Decimal] = {}
    if not raw.strip():
        return weights
    for chunk in raw.split(","):
        if "=" not in chunk:
            raise ValueError(f"Invalid SCORE_WEIGHTS entry: {chunk!r}")
        key, value = chunk.split("=", 1)
        try:
            weights[key.strip()] = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Invalid weight for {key.strip()}: {value!r}")
    return weights


class Config:
    """Base configuration."""

    # Reconciliation tolerances (absolute, decimal)
    PRICE_TOLERANCE: Decimal = Decimal(os.getenv("PRICE_TOLERANCE", "0"))
    QUANTITY_TOLERANCE: Decimal = Decimal(os.getenv("QUANTITY_TOLERANCE", "0"))

    # Which quantity an invoice line is compared against: received or ordered
    EXPECTED_QUANTITY_SOURCE: str = os.getenv("EXPECTED_QUANTITY_SOURCE", "received")

    # Near-miss description similarity that triggers an ambiguity warning (0-100)
    AMBIGUITY_SIMILARITY_THRESHOLD: float = float(os.getenv("AMBIGUITY_SIMILARITY_THRESHOLD", "85"))

    # Supplier scoring
    SCORE_WINDOW_MONTHS: int = int(os.getenv("SCORE_WINDOW_MONTHS", "12"))
    PUNCTUALITY_DELIVERY_GRACE_DAYS: int = int(os.getenv("PUNCTUALITY_DELIVERY_GRACE_DAYS", "0"))
    PUNCTUALITY_SENT_GRACE_DAYS: int = int(os.getenv("PUNCTUALITY_SENT_GRACE_DAYS", "2"))
    PEER_PRICE_POLICY: str = os.getenv("PEER_PRICE_POLICY", "auto")  # auto, exclude_self, include_self
    SCORE_WEIGHTS: Dict[str, Decimal] = _parse_weights(os.getenv("SCORE_WEIGHTS", ""))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = os.getenv("LOG_FILE", "")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        if cls.PRICE_TOLERANCE < 0 or cls.QUANTITY_TOLERANCE < 0:
            raise ValueError("Tolerances must be non-negative")

        if cls.EXPECTED_QUANTITY_SOURCE not in ["received", "ordered"]:
            raise ValueError(f"Invalid EXPECTED_QUANTITY_SOURCE: {cls.EXPECTED_QUANTITY_SOURCE}")

        if cls.PEER_PRICE_POLICY not in ["auto", "exclude_self", "include_self"]:
            raise ValueError(f"Invalid PEER_PRICE_POLICY: {cls.PEER_PRICE_POLICY}")

        if cls.SCORE_WINDOW_MONTHS <= 0:
            raise ValueError("SCORE_WINDOW_MONTHS must be positive")

        known = {"punctuality", "conformity", "price_competitiveness", "reliability"}
        for key, weight in cls.SCORE_WEIGHTS.items():
            if key not in known:
                raise ValueError(f"Unknown score dimension in SCORE_WEIGHTS: {key}")
            if weight < 0:
                raise ValueError(f"Negative weight for {key}")


class DevelopmentConfig(Config):
    """Development configuration."""
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""
    LOG_LEVEL = "INFO"


class TestConfig(Config):
    """Test configuration."""
    LOG_LEVEL = "DEBUG"
    LOG_FILE = ""


def get_config(env: str = None) -> Config:
    """Get configuration based on environment."""
    if env is None:
        env = os.getenv("ENV", "development").lower()

    if env == "production":
        config = ProductionConfig()
    elif env == "test":
        config = TestConfig()
    else:
        config = DevelopmentConfig()

    # Validate configuration on creation
    config.validate()
    return config
