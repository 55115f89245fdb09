from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Optional; auth admin calls (password update) and the sign-up profile upsert
    avatar_bucket: str = "profile-pictures"

    # Geocoding (Nominatim-compatible API)
    geocoding_base_url: str = "https://nominatim.openstreetmap.org"
    geocoding_user_agent: str = "ridecrew-backend/0.1"
    geocoding_timeout: float = 10.0
    autocomplete_debounce_ms: int = 500
    autocomplete_min_chars: int = 3
    autocomplete_limit: int = 5

    # Rides
    ride_now_window_minutes: int = 30
    ride_preferences_path: str = ".ridecrew/preferences.json"

    # Auth
    password_reset_redirect_url: str = "http://localhost:3000/auth/update-password"
    access_token_cookie: str = "sb-access-token"

    # App
    app_name: str = "ridecrew-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


settings = Settings()
