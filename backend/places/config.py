from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class PlacesConfig:
    api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    base_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
    timeout: float = 10.0
    max_concurrency: int = 11


DEFAULT_PLACES_CONFIG = PlacesConfig()
