from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    APP_NAME: str = "Discount Engine"
    DEBUG: bool = False

    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/discounts.db")

    @property
    def DATABASE_URL(self) -> str:
        # Resolve relative paths against the project root, not the current working directory
        db_path = self.DATABASE_PATH
        if not os.path.isabs(db_path):
            project_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
            db_path = os.path.join(project_dir, db_path)
        return f"sqlite:///{os.path.abspath(db_path)}"

    LOG_DIR: str = os.getenv("DISCOUNT_ENGINE_LOG_DIR", "logs")

    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    HOST: str = "127.0.0.1"
    PORT: int = 8765

    # Discount rules
    MAX_CUMULATIVE_DISCOUNT_PERCENTAGE: Decimal = Decimal("30")  # hard ceiling for a whole cart
    MAX_PRODUCT_STACKING_PERCENTAGE: Decimal = Decimal("30")  # cap when stacking on a single product
    CURRENCY_QUANTUM: Decimal = Decimal("0.01")  # minor unit of the currency

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra environment variables
    )


settings = Settings()
