# railbook/settings.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./railbook.db"

    # Fare components applied on top of the class fare
    gst_rate: float = 0.05
    reservation_charge: int = 40

    max_passengers: int = 6

    payment_delay_seconds: float = 2.0
    payment_timeout_seconds: float = 10.0
    seat_hold_ttl_seconds: int = 600

    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_prefix="RAILBOOK_")


settings = Settings()
