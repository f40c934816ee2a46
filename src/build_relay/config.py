from typing import Literal

from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings
from sanic.log import logger

from build_relay.exceptions import ConfigurationError


class Config(BaseSettings):
    CHAT_WEBHOOK: str

    CLOUD_BUILD_API_URL: str = "https://cloudbuild.googleapis.com/v1"

    # When False, a failed trigger lookup renders placeholders instead of
    # aborting the notification.
    TRIGGER_LOOKUP_FATAL: bool = True

    # Total timeout in seconds for the trigger lookup and the webhook post.
    OUTBOUND_TIMEOUT: float | None = None

    # Pub/Sub push authentication
    VERIFY_PUSH_TOKEN: bool = True
    PUSH_AUDIENCE: str | None = None
    PUSH_SERVICE_ACCOUNT: str | None = None

    OVERRIDE_LOGGING: Literal[
        "CRITICAL",
        "FATAL",
        "ERROR",
        "WARNING",
        "WARN",
        "INFO",
        "DEBUG",
        "NOTSET",
    ] = "INFO"

    @model_validator(mode="after")
    def check_push_audience(self):
        if self.VERIFY_PUSH_TOKEN and not self.PUSH_AUDIENCE:
            raise ValueError("PUSH_AUDIENCE is required when VERIFY_PUSH_TOKEN is set")
        return self

    def print_config(self):
        """Print configuration values with sensitive attributes masked"""
        sensitive_attrs = {
            "CHAT_WEBHOOK",
        }

        logger.info("=== Build Relay Configuration ===")
        for field_name, field_value in self.model_dump().items():
            if field_name in sensitive_attrs:
                logger.info(f"{field_name}: ***")
            else:
                logger.info(f"{field_name}: {field_value}")
        logger.info("=================================")


def load_config() -> Config:
    """Read the configuration from the environment, failing fast when incomplete."""
    try:
        return Config()  # type: ignore[call-arg]
    except ValidationError as e:
        problems = ", ".join(
            str(err["loc"][0]) if err["loc"] else err["msg"] for err in e.errors()
        )
        raise ConfigurationError(f"Invalid or missing settings: {problems}") from e
