"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (days for token lifetime,
    minutes for rate limit windows) to make configuration intuitive.
    """

    # Token settings
    token_expiry_days: int = Field(
        default=30,
        description="Access token lifetime in days",
        ge=1,
        le=365,
    )
    token_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max login attempts per email per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )

    # Application
    app_name: str = Field(
        default="Field Service",
        description="Application name, used as the token issuer",
    )
