"""Runtime settings read from the environment.

load_dotenv() runs at import so a local .env file works for the API server,
the CLI and the clustering loop alike. Settings is built once by the
composition root and passed down; nothing below main.py and cli.py reads
os.environ directly, except the LLM clients, which fetch their own API keys.
"""

import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv

from core.cache import DEFAULT_TTL_SECONDS

load_dotenv()

_DEFAULT_LOG_FILE = pathlib.Path(__file__).parent.parent / "disaster_pulse.log"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Attributes:
        llm_provider: "openrouter" or "maia".
        google_maps_api_key: Enables Google reverse geocoding. Nominatim is
            used when empty.
        reasoning_cache_ttl_seconds: ReasoningCache entry lifetime.
        cluster_proximity_deg: Bucket and nearby-incident radius, in degrees
            on each axis.
        cluster_min_signals: Smallest bucket that gets reasoned over.
        cluster_window_minutes: How far back a clustering pass looks for
            pending signals.
        cluster_interval_seconds: Period of the background clustering loop.
            0 disables it.
        allowed_origins: CORS origins for the API.
        log_file: Path of the rotating log file.
    """

    llm_provider: str = "openrouter"
    google_maps_api_key: str = ""
    reasoning_cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    cluster_proximity_deg: float = 0.05
    cluster_min_signals: int = 2
    cluster_window_minutes: int = 60
    cluster_interval_seconds: float = 300
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_file: pathlib.Path = _DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults.

        Raises:
            ValueError: If a numeric variable is set but not a number.
        """
        env = os.environ
        return cls(
            llm_provider=env.get("LLM_PROVIDER", "openrouter").strip().lower(),
            google_maps_api_key=env.get("GOOGLE_MAPS_API_KEY", ""),
            reasoning_cache_ttl_seconds=float(env.get("REASONING_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS)),
            cluster_proximity_deg=float(env.get("CLUSTER_PROXIMITY_DEG", 0.05)),
            cluster_min_signals=int(env.get("CLUSTER_MIN_SIGNALS", 2)),
            cluster_window_minutes=int(env.get("CLUSTER_WINDOW_MINUTES", 60)),
            cluster_interval_seconds=float(env.get("CLUSTER_INTERVAL_SECONDS", 300)),
            allowed_origins=tuple(
                o.strip() for o in env.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()
            ),
            log_file=pathlib.Path(env.get("LOG_FILE", str(_DEFAULT_LOG_FILE))),
        )
