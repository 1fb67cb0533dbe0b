from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key, used to resolve users from their access tokens
    supabase_service_role_key: Optional[str] = None  # Required for admin operations (email-change links, redemptions, send-email)

    # Email change
    email_change_secret: Optional[SecretStr] = None  # HMAC key for email-change tokens
    email_change_ttl_seconds: int = 24 * 60 * 60
    email_change_max_token_length: int = 4096
    site_url: str = "https://coreflowhr.com"
    send_email_function: str = "send-email"  # Supabase Edge Function that delivers mail

    # App
    app_name: str = "coreflow-email-change"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_email_change_secret(self) -> Optional[bytes]:
        """Raw HMAC key, or None when EMAIL_CHANGE_SECRET is unset or blank."""
        if self.email_change_secret is None:
            return None
        value = self.email_change_secret.get_secret_value()
        return value.encode("utf-8") if value else None

    def get_site_base_url(self) -> str:
        return self.site_url.rstrip("/")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
