"""
Centralized application configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Vadiler API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Vadiler Çiçekçilik storefront backend"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = True
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""

    # Analytics store (separate Supabase project)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    ANALYTICS_ENABLED: bool = True

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://vadiler.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,https://vadiler.com"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Public URLs
    SITE_URL: str = "https://vadiler.com"
    APP_URL: str = "http://localhost:3000"

    # Payment gateway (iyzico)
    IYZICO_API_KEY: str = ""
    IYZICO_SECRET_KEY: str = ""
    IYZICO_BASE_URL: str = "https://sandbox-api.iyzipay.com"

    # SMTP
    SMTP_HOST: str = "eposta.ni.net.tr"
    SMTP_PORT: int = 465
    SMTP_SECURE: Optional[bool] = None
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_NAME: str = "Vadiler Çiçekçilik"
    SMTP_FROM_EMAIL: str = "bilgi@vadiler.com"

    # Secrets
    AUTH_SECRET: str = ""
    AUTH_SESSION_SECRET: str = ""
    OTP_SECRET: str = "dev-otp-secret"
    CRON_SECRET: str = ""

    # Google OAuth
    GOOGLE_OAUTH_CLIENT_ID: str = ""
    GOOGLE_OAUTH_CLIENT_SECRET: str = ""

    # Bulk imports
    BULK_IMPORT_DELAY_SECONDS: float = 0.3

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def smtp_secure(self) -> bool:
        """Implicit TLS when explicitly enabled or when using port 465"""
        if self.SMTP_SECURE is not None:
            return self.SMTP_SECURE
        return self.SMTP_PORT == 465

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
