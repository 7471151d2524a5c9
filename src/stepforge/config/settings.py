"""
Settings - Pydantic models for type-safe configuration.

This module defines all configuration settings as Pydantic models,
providing validation, type hints, and automatic environment variable loading.

Example:
    >>> from stepforge.config import Settings, load_config
    >>> settings = load_config()  # Loads from env, yaml, and defaults
    >>> print(settings.recorder.settle_delay_ms)
    50
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrowserSettings(BaseModel):
    """
    Browser settings for live recording sessions.
    
    Attributes:
        browser_type: Playwright browser to launch
        channel: Branded browser channel (chrome, msedge) - chromium only
        headless: Run browser in headless mode
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
        slow_mo: Slow down operations by this amount (ms) - useful for debugging
    """
    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    channel: Optional[str] = None
    headless: bool = False
    viewport_width: int = Field(default=1280, ge=320, le=3840)
    viewport_height: int = Field(default=720, ge=240, le=2160)
    slow_mo: int = Field(default=0, ge=0, le=5000)


class RecorderSettings(BaseModel):
    """
    Event-to-action reduction and selector inference settings.
    
    Attributes:
        smart: Use the full-fidelity selector chain and target resolution
            (shadow DOM search, distance-gated checkbox attribution).
            When False the simpler chain is used.
        settle_delay_ms: Wait before reading a toggled checkbox's state
        checkbox_distance_px: Max distance between click point and a
            nested checkbox's center for the click to be attributed to it
        checkbox_search_depth: Max nesting of shadow roots searched
        parent_search_levels: Ancestor levels searched for a checkbox
        click_dedup_window_ms: Same-locator clicks inside this window are dropped
        css_path_depth: Max ancestor levels in a structural CSS path
        max_text_length: Longest visible text usable in a text locator
    """
    smart: bool = True
    settle_delay_ms: int = Field(default=50, ge=0, le=2000)
    checkbox_distance_px: float = Field(default=100.0, gt=0)
    checkbox_search_depth: int = Field(default=5, ge=0, le=20)
    parent_search_levels: int = Field(default=2, ge=0, le=10)
    click_dedup_window_ms: int = Field(default=500, ge=0, le=10000)
    css_path_depth: int = Field(default=4, ge=1, le=32)
    max_text_length: int = Field(default=50, ge=1, le=500)


class DedupSettings(BaseModel):
    """
    Post-session deduplication settings.
    
    Attributes:
        click_window_ms: Repeated clicks on one locator closer than this are dropped
        enter_window_ms: Window in which an Enter follows its typed value
    """
    click_window_ms: int = Field(default=500, ge=0, le=10000)
    enter_window_ms: int = Field(default=1000, ge=0, le=10000)


class OutputSettings(BaseModel):
    """
    Where completed sessions are written.
    
    Attributes:
        output_dir: Directory for session JSON files
        default_feature: Feature name used when none is given
    """
    output_dir: str = "./recordings"
    default_feature: str = "MyFeature"


class LoggingSettings(BaseModel):
    """
    Logging configuration.
    
    Attributes:
        level: Log level
        file: Log file path (None for console only)
        json_format: Use JSON format for logs
    """
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = None
    json_format: bool = False


class Settings(BaseSettings):
    """
    Root settings container - single source of truth for all configuration.
    
    Settings are loaded in this priority order (highest to lowest):
    1. Explicit values passed to constructor
    2. Environment variables (prefixed with STEPFORGE__)
    3. Config file (YAML)
    4. Default values
    
    Example:
        >>> settings = Settings()  # Load from env vars
        >>> settings = Settings(recorder=RecorderSettings(smart=False))  # Override
    """
    
    model_config = SettingsConfigDict(
        env_prefix="STEPFORGE__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )
    
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    recorder: RecorderSettings = Field(default_factory=RecorderSettings)
    dedup: DedupSettings = Field(default_factory=DedupSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    
    debug: bool = False
    
    def merge_with(self, overrides: dict) -> "Settings":
        """
        Create a new Settings instance with overrides applied.
        
        Args:
            overrides: Dictionary of values to override
            
        Returns:
            New Settings instance with overrides applied
        """
        current = self.model_dump()
        
        def deep_merge(base: dict, updates: dict) -> dict:
            for key, value in updates.items():
                if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                    deep_merge(base[key], value)
                else:
                    base[key] = value
            return base
        
        merged = deep_merge(current, overrides)
        return Settings(**merged)
