"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings

MPESA_BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}


class Settings(BaseSettings):
    # M-Pesa Daraja credentials
    mpesa_consumer_key: str = ""
    mpesa_consumer_secret: str = ""
    mpesa_business_short_code: str = ""
    mpesa_passkey: str = ""
    mpesa_environment: str = "sandbox"  # "sandbox" or "production"
    mpesa_transaction_type: str = "CustomerPayBillOnline"

    # Public base URL the provider posts callbacks to
    callback_base_url: str = "http://localhost:8000/api/v1"

    request_timeout_seconds: float = 30.0
    token_refresh_margin_seconds: int = 300  # refresh 5 minutes before expiry
    provider_utc_offset_hours: int = 3  # East Africa Time

    min_amount: float = 1
    max_amount: float = 70_000

    api_key: str = ""  # empty disables the X-API-Key check
    database_url: str = "sqlite+aiosqlite:///./stk_gateway.db"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def mpesa_base_url(self) -> str:
        return MPESA_BASE_URLS.get(self.mpesa_environment.lower(), MPESA_BASE_URLS["sandbox"])

    @property
    def stk_callback_url(self) -> str:
        return f"{self.callback_base_url.rstrip('/')}/payments/callback/stk"

    def missing_credentials(self) -> list[str]:
        """Names of required M-Pesa variables that are not set."""
        required = {
            "MPESA_CONSUMER_KEY": self.mpesa_consumer_key,
            "MPESA_CONSUMER_SECRET": self.mpesa_consumer_secret,
            "MPESA_BUSINESS_SHORT_CODE": self.mpesa_business_short_code,
            "MPESA_PASSKEY": self.mpesa_passkey,
        }
        return [name for name, value in required.items() if not value]


settings = Settings()
