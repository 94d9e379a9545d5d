"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys
from pathlib import Path
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sysreg.exceptions import ConfigError
from sysreg.helpers import http_language


class Settings(BaseSettings):
    """Registration settings loaded from environment variables."""

    # Registration server - None means the default entitlement service
    registration_url: str | None = None
    request_timeout: float = 60.0

    # Locale (LANG) used for the Accept-Language of remote calls
    lang: str = ""

    # Debug toggles, read the same way as the installer boot options
    sccdebug: bool = False
    y2debug: bool = False

    # Disables TLS certificate checks for every remote call
    insecure_registration: bool = False

    # Package manager paths
    zypp_dir: Path = Path("/etc/zypp")
    credentials_dir: Path = Path("/etc/zypp/credentials.d")
    global_credentials_name: str = "SCCcredentials"
    products_dir: Path = Path("/etc/products.d")

    # System trust store
    trust_anchors_dir: Path = Path("/etc/pki/trust/anchors")
    trust_update_command: str = "update-ca-certificates"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    service_name: str = "sysreg"
    version: str = "0.1.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        A bad registration URL would otherwise only show up as an obscure
        transport error during the first remote call.
        """
        errors: list[str] = []

        if self.registration_url:
            parsed = urlparse(self.registration_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(
                    f"REGISTRATION_URL must be an absolute http(s) URL, got: {self.registration_url}"
                )

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")

        if self.request_timeout <= 0:
            errors.append(f"REQUEST_TIMEOUT must be positive, got: {self.request_timeout}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CONFIGURATION ERROR - REGISTRATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigError(error_msg)

        return self

    @property
    def global_credentials_path(self) -> Path:
        """Path of the credentials written by the system announcement."""
        return self.credentials_dir / self.global_credentials_name

    @property
    def http_language(self) -> str | None:
        """Accept-Language value derived from LANG."""
        return http_language(self.lang)


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
