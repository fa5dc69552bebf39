from typing import Any

from .settings import Settings, get_settings


def env(key: str, default: Any = None) -> Any:
    """Read a setting by name, case-insensitively.

    Declared fields come back validated and typed. Undeclared keys come from
    the raw values kept by ``extra="allow"``, which pydantic-settings stores
    lower-cased.
    """
    settings = get_settings()
    name = key.upper()
    if name in Settings.model_fields:
        value = getattr(settings, name)
        return default if value is None else value

    extras = settings.model_extra or {}
    return extras.get(key.lower(), extras.get(name, default))


__all__ = ["Settings", "env", "get_settings"]
