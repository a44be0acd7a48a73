"""Shaper configuration."""

import os
from typing import Optional

from pydantic import BaseModel, Field


class ShaperConfig(BaseModel):
    """Configuration for the query shaper."""

    backend_url: str = "http://localhost:4000/graphql"
    backend_timeout_seconds: float = 30.0
    min_observations: int = Field(ge=1, default=3)
    admission_threshold: float = Field(ge=0, le=1, default=0.8)
    default_surface: str = "default_screen"
    surface_header: str = "x-screen-name"
    snapshot_path: Optional[str] = "./learned_patterns.json"

    @classmethod
    def from_env(cls) -> "ShaperConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            backend_url=os.getenv("GRAPHQL_BACKEND_URL", defaults.backend_url),
            backend_timeout_seconds=float(
                os.getenv("QUERY_SHAPER_BACKEND_TIMEOUT", defaults.backend_timeout_seconds)
            ),
            min_observations=int(
                os.getenv("QUERY_SHAPER_MIN_OBSERVATIONS", defaults.min_observations)
            ),
            admission_threshold=float(
                os.getenv("QUERY_SHAPER_THRESHOLD", defaults.admission_threshold)
            ),
            default_surface=(
                os.getenv("QUERY_SHAPER_DEFAULT_SURFACE") or defaults.default_surface
            ).strip(),
            surface_header=(
                os.getenv("QUERY_SHAPER_SURFACE_HEADER") or defaults.surface_header
            ).strip().lower(),
            snapshot_path=os.getenv("QUERY_SHAPER_SNAPSHOT_PATH", defaults.snapshot_path) or None,
        )
