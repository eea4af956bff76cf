"""Configuration settings for the YouTube webhook service."""
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    environment: str = "development"

    # PubSubHubbub
    webhook_base_url: str = Field(
        "https://default-function-url",
        validation_alias=AliasChoices("webhook_base_url", "function_url"),
    )  # Public URL the hub calls back
    pubsubhubbub_hub_url: str = "https://pubsubhubbub.appspot.com/subscribe"
    hub_request_timeout_seconds: float = 30.0

    # Subscription lifecycle
    subscription_lease_seconds: int = 86400
    subscription_renewal_threshold_hours: float = 12
    subscription_max_renewal_attempts: int = 3
    enable_subscription_renewal_scheduler: bool = False
    subscription_renewal_interval_minutes: int = 60

    # Subscription state storage
    storage_type: str = "s3"  # Options: "s3", "local" or "memory"
    subscription_bucket: Optional[str] = None
    subscription_object_key: str = "subscriptions/state.json"
    local_state_path: Optional[str] = "./storage/subscriptions/state.json"

    # AWS S3 Configuration (used when storage_type="s3")
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"

    # GitHub repository dispatch
    github_token: Optional[str] = None
    github_api_base_url: str = "https://api.github.com"
    repo_owner: Optional[str] = None
    repo_name: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
