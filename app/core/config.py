from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = True

    # JWT (tokens are issued by the auth provider with the shared secret)
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Schedule defaults, used until the admin saves business hours
    default_slot_duration_minutes: int = 60
    default_business_start: str = "08:00"
    default_business_end: str = "21:00"
    # Length of an admin block; empty means "one slot duration"
    block_duration_minutes: int | None = None
    default_calendar_view: str = "week"
    business_timezone: str = "America/Sao_Paulo"

    # Reminders: the cron endpoint needs CRON_SECRET; the in-process loop is opt-in
    cron_secret: str = ""
    reminder_loop_enabled: bool = False

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Pet Care Schedule"
    admin_email: str = ""
    email_logo_url: str = ""
    # Branding and contact in footer
    site_name: str = "Pet Care Schedule"
    app_url: str = "http://localhost:3000"
    contact_email: str = ""
    contact_phone: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def notification_admin_email(self) -> str:
        return self.admin_email or self.from_email or self.contact_email


settings = Settings()
