"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    Services receive a Settings instance explicitly; nothing reads a module-level
    instance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="ReelForge", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    # ========================================================================
    # Provider Credentials
    # ========================================================================
    eachlabs_api_key: Optional[str] = Field(
        default=None, description="EachLabs API key (FLUX image models and Hailuo video)"
    )
    eachlabs_api_url: str = Field(
        default="https://api.eachlabs.ai/v1/prediction", description="EachLabs prediction endpoint"
    )
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key (speech synthesis)")
    blob_api_url: Optional[str] = Field(
        default=None, description="Object storage base URL used to stage images for providers"
    )
    blob_token: Optional[str] = Field(default=None, description="Object storage read/write token")

    # ========================================================================
    # Model Selection
    # ========================================================================
    image_model: str = Field(default="flux-kontext-pro", description="Direct image generation model")
    text_model: str = Field(default="gemini-2.5-flash", description="Text generation model")
    tts_provider: str = Field(default="openai", description="Speech provider: 'openai' or 'gemini'")
    tts_model: str = Field(default="tts-1", description="OpenAI speech model")
    tts_voice: Optional[str] = Field(
        default=None, description="Voice name (defaults: 'nova' for OpenAI, 'Kore' for Gemini)"
    )

    # ========================================================================
    # Timeline Settings
    # ========================================================================
    fps: int = Field(default=30, description="Frames per second of the render plan")
    video_width: int = Field(default=1920, description="Output width in pixels")
    video_height: int = Field(default=1080, description="Output height in pixels")
    transition_frames: int = Field(default=15, description="Cross-scene transition length in frames")
    transition_type: str = Field(default="fade", description="fade, dissolve, slide, zoom or none")
    min_scene_seconds: int = Field(default=8, description="Shortest scene when narration audio exists")
    scene_buffer_seconds: int = Field(default=1, description="Silence kept after narration audio")
    subtitle_segment_seconds: int = Field(default=10, description="Audio seconds per subtitle segment")
    subtitle_fade_seconds: float = Field(default=0.3, description="Subtitle fade in/out inside each slot")
    ken_burns_intensity: float = Field(default=0.3, description="Default Ken Burns intensity (0.0-1.0)")

    # ========================================================================
    # Batching Settings
    # ========================================================================
    image_batch_size: int = Field(default=5, description="Concurrent image generations per window")
    narration_batch_size: int = Field(default=5, description="Concurrent speech syntheses per window")
    image_window_delay_ms: int = Field(default=7000, description="Delay between image windows")
    openai_tts_window_delay_ms: int = Field(default=2000, description="Delay between OpenAI speech windows")
    gemini_tts_window_delay_ms: int = Field(default=5000, description="Delay between Gemini speech windows")
    image_retry_attempts: int = Field(default=3, description="Attempts for a single direct scene image")

    # ========================================================================
    # Polling Settings
    # ========================================================================
    image_poll_interval_ms: int = Field(default=3000, description="Status query interval for image jobs")
    image_max_wait_ms: int = Field(default=120000, description="Wall-clock budget for image jobs")
    video_poll_interval_ms: int = Field(default=5000, description="Status query interval for video jobs")
    video_max_wait_ms: int = Field(default=300000, description="Wall-clock budget for video jobs")
    max_consecutive_poll_failures: int = Field(
        default=3, description="Consecutive failed status queries before a job is abandoned"
    )
    http_timeout_seconds: float = Field(default=60.0, description="Timeout for a single HTTP request")
