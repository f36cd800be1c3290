"""Startup-time logging of the effective configuration."""

from pydantic_settings import BaseSettings

from framepay.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def redacted_config(config: BaseSettings, fields: list[str]) -> dict[str, str]:
    """Selected settings as `ENV_NAME -> value`, with secret-like values hidden."""

    view: dict[str, str] = {}
    for field in fields:
        env_name = field.upper()
        value = getattr(config, field, None)
        if value is None:
            view[env_name] = "<unset>"
        elif any(marker in env_name for marker in SECRET_MARKERS):
            view[env_name] = "<redacted>" if value else "<empty>"
        else:
            view[env_name] = str(value)
    return view


def log_startup_config(config: BaseSettings, fields: list[str]) -> None:
    logger.info("startup_config service=%s config=%s", getattr(config, "service_name", "-"), redacted_config(config, fields))
