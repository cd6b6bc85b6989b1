"""
Verifier configuration: extraction waterfall timeouts, retries and browser options.
Uses DC_VERIFIER_ prefix; shared settings (sites dir, logging) come from get_settings().
"""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerifierSettings(BaseSettings):
    """Per-strategy limits for the extraction waterfall."""

    model_config = SettingsConfigDict(
        env_prefix="DC_VERIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API strategy
    api_timeout_s: float = Field(default=10.0, description="Hard timeout for the single API GET")

    # Static HTML strategy
    static_timeout_s: float = Field(default=15.0, description="Timeout per static fetch attempt")
    static_max_retries: int = Field(default=2, description="Retries after the initial attempt")
    static_retry_base_delay_s: float = Field(
        default=2.0, description="Linear backoff base: delay = base * attempt number"
    )

    # Headless browser strategy
    browser_nav_timeout_s: float = Field(default=30.0, description="Navigation timeout (DOM ready)")
    browser_settle_s: float = Field(default=2.0, description="Fixed wait for dynamic content")
    browser_selector_wait_s: float = Field(
        default=3.0, description="Extra wait for the title selector; timeout tolerated"
    )
    browser_headless: bool = True
    browser_args: list[str] = Field(
        default=[
            "--disable-blink-features=AutomationControlled",
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
        ],
    )
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1920
    viewport_height: int = 1080
    locale: str = "en-US"

    # Shared extraction rules
    user_agent: str = "Mozilla/5.0 (compatible; DataChecker/1.0)"
    raw_text_limit: int = Field(default=8000, description="Max characters of raw fallback text")
    min_raw_text_chars: int = Field(
        default=100, description="Below this, a page with no structured fields is a miss"
    )


def get_verifier_settings() -> VerifierSettings:
    """Load verifier settings from the environment."""
    return VerifierSettings()
