"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings
from pydantic import SecretStr
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS Settings
    cors_origins: str = "*"

    # Azure AD app registration (client credentials flow)
    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: SecretStr = SecretStr("")
    authority_host: str = "https://login.microsoftonline.com"

    # Backend endpoints and OAuth scopes
    graph_base_url: str = "https://graph.microsoft.com"
    graph_scope: str = "https://graph.microsoft.com/.default"
    azure_management_url: str = "https://management.azure.com"
    azure_scope: str = "https://management.azure.com/.default"

    # Tokens are treated as expired this many seconds early
    token_refresh_margin_seconds: int = 60

    # Engine defaults
    default_max_retries: int = 3
    default_retry_delay_ms: int = 1000
    default_timeout_ms: int = 30000
    default_batch_size: int = 100

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def has_azure_credentials(self) -> bool:
        """Check if Azure credentials are configured."""
        return bool(
            self.azure_tenant_id
            and self.azure_client_id
            and self.azure_client_secret.get_secret_value()
        )

    @property
    def authority(self) -> str:
        """Tenant-specific authority URL for MSAL."""
        return f"{self.authority_host.rstrip('/')}/{self.azure_tenant_id}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
