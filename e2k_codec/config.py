"""
Runtime settings, read from the environment (and a .env file if present).
"""
import os
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class CodecSettings(BaseModel):
    program_name: str = Field("ETABS", description="Program named in the PROGRAM INFORMATION header")
    program_version: str = Field("21.2.0", description="Version written in the header and log footer")
    company_name: Optional[str] = Field(None, description="Fallback COMPANYNAME / TITLE1")
    number_precision: Optional[int] = Field(
        None, ge=0, le=15,
        description="Maximum decimals when writing numbers; None writes the shortest exact text",
    )
    case_insensitive_refs: bool = Field(False, description="Resolve named references ignoring case")
    deck_match_threshold: float = Field(5.0, gt=0, description="Best-fit deck score must be below this")
    deck_depth_tolerance: float = Field(0.25, ge=0, description="Tolerance for rib-depth-only deck matching")
    grid_extent: float = Field(1000.0, gt=0, description="Half-length of imported grid lines")
    strict: bool = Field(False, description="Raise on any diagnostics entry after import")


def _env_bool(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env() -> CodecSettings:
    """Build settings from E2K_* environment variables, keeping defaults for unset ones."""
    values = {
        "program_name": os.getenv("E2K_PROGRAM_NAME"),
        "program_version": os.getenv("E2K_PROGRAM_VERSION"),
        "company_name": os.getenv("E2K_COMPANY_NAME"),
        "number_precision": os.getenv("E2K_NUMBER_PRECISION"),
        "case_insensitive_refs": _env_bool("E2K_CASE_INSENSITIVE_REFS"),
        "deck_match_threshold": os.getenv("E2K_DECK_MATCH_THRESHOLD"),
        "deck_depth_tolerance": os.getenv("E2K_DECK_DEPTH_TOLERANCE"),
        "grid_extent": os.getenv("E2K_GRID_EXTENT"),
        "strict": _env_bool("E2K_STRICT"),
    }
    return CodecSettings(**{k: v for k, v in values.items() if v not in (None, "")})


@lru_cache(maxsize=1)
def get_settings() -> CodecSettings:
    return settings_from_env()
