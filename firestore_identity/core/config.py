"""Library configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. The target project is the only required value and is
validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment and .env.

    Everything has a default except the target project, which must come from
    GOOGLE_PROJECT_ID or from the service account key's project_id.
    """

    app_name: str = "firestore-identity"
    debug: bool = False

    # Target project / database
    google_project_id: str = ""
    firestore_database: str = "(default)"
    firestore_timeout_seconds: float = 30.0

    # Credentials: key (env JSON string) or path (file). Neither set means
    # Application Default Credentials.
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None

    # Local emulator, e.g. "localhost:8080". Disables credential lookup.
    firestore_emulator_host: str | None = None

    # Collections
    users_collection: str = "users"
    roles_collection: str = "roles"
    user_links_collection: str = "user-roles"
    role_links_collection: str = "users"

    # Membership writes: True commits both link copies in one atomic commit;
    # False writes them one after the other (user side first).
    membership_atomic_writes: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_project(self) -> "Settings":
        """Require a target project unless a service account key or the emulator supplies one."""
        has_key = (
            self.firebase_service_account_key
            and self.firebase_service_account_key.get_secret_value()
        )
        if not (
            self.google_project_id
            or has_key
            or self.firebase_service_account_path
            or self.firestore_emulator_host
        ):
            raise ValueError(
                "GOOGLE_PROJECT_ID is required (or set FIREBASE_SERVICE_ACCOUNT_KEY / "
                "FIREBASE_SERVICE_ACCOUNT_PATH to a key that contains project_id, "
                "or FIRESTORE_EMULATOR_HOST to use the emulator)."
            )
        if self.firestore_timeout_seconds <= 0:
            raise ValueError(
                f"firestore_timeout_seconds must be positive, got {self.firestore_timeout_seconds}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
