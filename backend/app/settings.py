from __future__ import annotations

import os
from dataclasses import dataclass

from app.cricket.targets import PointsRule

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings, read from the environment.

    - auto_advance: settle a turn as soon as its third dart lands. Turn it off
      when the UI wants to pause on the third dart and call /match/settle itself.
    - log_level: passed to logging.basicConfig.
    - default_points_rule: points rule used when a new match does not name one.
    """

    auto_advance: bool = True
    log_level: str = "INFO"
    default_points_rule: PointsRule = PointsRule.SWAMP

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            auto_advance=_env_bool("CRICKET_AUTO_ADVANCE", True),
            log_level=os.environ.get("CRICKET_LOG_LEVEL", "INFO").upper(),
            default_points_rule=PointsRule(os.environ.get("CRICKET_DEFAULT_POINTS_RULE", "swamp")),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
