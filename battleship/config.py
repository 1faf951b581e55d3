import os
from typing import List, Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime knobs for matches. Durations are in seconds."""

    round_length: float = 30
    round_warning: float = 3
    round_tick: float = 1
    setup_timeout: float = 180
    invite_timeout: float = 60
    cleanup_delay: float = 5
    prompt_timeout: float = 30
    # roles allowed to manage zones (the host always may)
    auth_setup: List[str] = Field(default_factory=list)
    broadcast: bool = True
    enforce_max_zone_dist: bool = False
    max_zone_dist: float = 10
    proximity_interval: float = 2.5
    store_path: Optional[str] = "data/battleship.json"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        roles = [r.strip() for r in env.get("BATTLESHIP_AUTH_SETUP", "").split(",") if r.strip()]
        return cls(
            round_length=float(env.get("BATTLESHIP_ROUND_LENGTH", "30")),
            round_warning=float(env.get("BATTLESHIP_ROUND_WARNING", "3")),
            round_tick=float(env.get("BATTLESHIP_ROUND_TICK", "1")),
            setup_timeout=float(env.get("BATTLESHIP_SETUP_TIMEOUT", "180")),
            invite_timeout=float(env.get("BATTLESHIP_INVITE_TIMEOUT", "60")),
            cleanup_delay=float(env.get("BATTLESHIP_CLEANUP_DELAY", "5")),
            prompt_timeout=float(env.get("BATTLESHIP_PROMPT_TIMEOUT", "30")),
            auth_setup=roles,
            broadcast=_env_bool("BATTLESHIP_BROADCAST", True),
            enforce_max_zone_dist=_env_bool("BATTLESHIP_ENFORCE_MAX_ZONE_DIST", False),
            max_zone_dist=float(env.get("BATTLESHIP_MAX_ZONE_DIST", "10")),
            proximity_interval=float(env.get("BATTLESHIP_PROXIMITY_INTERVAL", "2.5")),
            store_path=env.get("BATTLESHIP_STORE_PATH", "data/battleship.json") or None,
        )
