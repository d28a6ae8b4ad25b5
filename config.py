import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # Supply display
    REFILL_THRESHOLD_DAYS: int = int(os.getenv("REFILL_THRESHOLD_DAYS", "5"))
    SHOW_DAYS_SUPPLY: bool = os.getenv("SHOW_DAYS_SUPPLY", "true").lower() == "true"
    DEFAULT_TOTAL_STOCK: float = float(os.getenv("DEFAULT_TOTAL_STOCK", "100"))
    # Fraction of the full-pack level at or below which a medication goes on the pharmacy list
    LOW_STOCK_RATIO: float = float(os.getenv("LOW_STOCK_RATIO", "0.2"))

    # History
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "50"))

    # Server
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "")
    PORT: int = int(os.getenv("PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        if cls.REFILL_THRESHOLD_DAYS < 0:
            raise ValueError("REFILL_THRESHOLD_DAYS must not be negative")
        if cls.DEFAULT_TOTAL_STOCK <= 0:
            raise ValueError("DEFAULT_TOTAL_STOCK must be positive")
        if not 0 <= cls.LOW_STOCK_RATIO <= 1:
            raise ValueError("LOW_STOCK_RATIO must be between 0 and 1")
        if cls.HISTORY_LIMIT <= 0:
            raise ValueError("HISTORY_LIMIT must be positive")
