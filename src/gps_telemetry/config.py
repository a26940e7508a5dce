import pydantic_settings


class GPSTelemetryConfig(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix="GPS_TELEMETRY_")

    # --- Output defaults (overridden by CLI flags) ---
    PRINT_FILENAME: bool = False
    PRINT_FILEPATH: bool = False

    # --- Filter defaults ---
    # None means no filtering
    MIN_FIX: int | None = None
    MAX_PRECISION: int | None = None

    # --- External tools ---
    FFPROBE: str = "ffprobe"
    FFMPEG: str = "ffmpeg"


config = GPSTelemetryConfig()
