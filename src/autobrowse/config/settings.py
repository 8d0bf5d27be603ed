"""
Settings - Pydantic models for type-safe configuration.

This module defines all configuration settings as Pydantic models,
providing validation, type hints, and automatic environment variable loading.

Example:
    >>> from autobrowse.config import Settings, load_config
    >>> settings = load_config()  # Loads from env, yaml, and defaults
    >>> print(settings.backend.preference)
    'auto'
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrowserSettings(BaseModel):
    """
    Browser session defaults.
    
    Attributes:
        headless: Run the in-process browser headless
        viewport_width: Viewport width in pixels
        viewport_height: Viewport height in pixels
        locale: Browser locale
        timezone: IANA timezone id
        profile_id: Default profile id when a call passes none
        profiles_dir: Directory holding persistent local profiles
        data_dir: Directory for assignment/context stores
        default_timeout_ms: Default Playwright action/navigation timeout
    """
    headless: bool = True
    viewport_width: int = Field(default=1280, ge=320, le=3840)
    viewport_height: int = Field(default=800, ge=240, le=2160)
    locale: str = "en-US"
    timezone: str = "UTC"
    profile_id: str = "default"
    profiles_dir: str = "./.autobrowse/profiles"
    data_dir: str = "./.autobrowse"
    default_timeout_ms: int = Field(default=60000, ge=1000, le=300000)
    
    # Profile lease
    profile_lease_ms: int = Field(default=600000, ge=30000)


class BackendSettings(BaseModel):
    """
    Browser backend selection and remote provider credentials.
    
    Remote credentials fall back to the vendor environment variables
    (STEEL_API_KEY, BROWSERBASE_API_KEY, BROWSERBASE_PROJECT_ID) when unset.
    """
    preference: Literal["auto", "local", "browserbase", "steel"] = "auto"
    fallback_on_error: bool = True
    
    steel_api_key: Optional[SecretStr] = None
    steel_api_url: str = "https://api.steel.dev/v1"
    steel_connect_url: str = "wss://connect.steel.dev"
    steel_session_timeout_ms: int = Field(default=600000, ge=60000)
    
    browserbase_api_key: Optional[SecretStr] = None
    browserbase_project_id: Optional[str] = None
    browserbase_api_url: str = "https://api.browserbase.com/v1"
    
    max_concurrency: int = Field(default=1, ge=1, le=32)
    start_retries: int = Field(default=3, ge=1, le=10)
    request_timeout_ms: int = Field(default=30000, ge=1000)
    enable_live_view: bool = True


class NavigationSettings(BaseModel):
    """
    Navigation loop budgets.
    
    Attributes:
        settle_ms: Post-navigation settle delay
        max_iterations: Maximum pages visited per turn
        max_pages_per_turn: Page budget used to size the candidate queue
        max_search_results: Search results requested per turn
        stagnation_limit: Consecutive pages without new information before stopping
        tool_timeout_ms: Timeout applied to each tool call
    """
    settle_ms: int = Field(default=1200, ge=0, le=5000)
    max_iterations: int = Field(default=6, ge=1, le=30)
    max_pages_per_turn: int = Field(default=3, ge=1, le=6)
    max_search_results: int = Field(default=8, ge=3, le=20)
    stagnation_limit: int = Field(default=3, ge=1, le=10)
    repeat_limit: int = Field(default=2, ge=1, le=10)
    tool_timeout_ms: int = Field(default=90000, ge=1000)


class SearchSettings(BaseModel):
    """
    Web search providers.
    
    The Brave key falls back to BRAVE_SEARCH_API_KEY when unset.
    """
    brave_api_key: Optional[SecretStr] = None
    managed_api_url: Optional[str] = None
    managed_api_key: Optional[SecretStr] = None
    timeout_ms: int = Field(default=45000, ge=1000)
    provider_timeout_ms: int = Field(default=12000, ge=1000)
    default_limit: int = Field(default=8, ge=1, le=20)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    enable_browser_fallback: bool = True


class PolicySettings(BaseModel):
    """
    Action risk policy.
    
    Attributes:
        confirm_secret: HMAC secret for confirmation tokens
        allowed_domains: Hosts considered on-profile for navigation (empty = any)
        high_risk_keywords: Click target keywords that escalate risk to high
    """
    confirm_secret: SecretStr = SecretStr("autobrowse-local-confirm-secret")
    allowed_domains: List[str] = Field(default_factory=list)
    high_risk_keywords: List[str] = Field(default_factory=lambda: [
        "buy", "purchase", "order", "confirm", "delete", "remove",
        "send", "publish", "transfer", "save", "submit", "pay", "checkout",
    ])
    cli_name: str = "autobrowse"


class ToolSettings(BaseModel):
    """Worker pool sizes for the tool runtime."""
    general_workers: int = Field(default=4, ge=1, le=64)
    browser_workers: int = Field(default=1, ge=1, le=16)


class PerceptionSettings(BaseModel):
    """Page observation settings."""
    screenshot_dir: str = "./.autobrowse/screenshots"
    max_elements: int = Field(default=160, ge=1, le=1000)
    max_visible_text: int = Field(default=12000, ge=500)


class LLMSettings(BaseModel):
    """
    Optional LLM used for navigation judging and task planning.
    
    Attributes:
        enabled: Use the LLM judge instead of the deterministic one
        model: Model name/identifier
        api_key: API key (reads OPENAI_API_KEY if not set)
        base_url: OpenAI-compatible endpoint
        temperature: Sampling temperature
        timeout: Request timeout in seconds
    """
    enabled: bool = False
    model: str = "gpt-4o-mini"
    api_key: Optional[SecretStr] = None
    base_url: str = "https://api.openai.com/v1"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=600, ge=1, le=128000)
    timeout: int = Field(default=30, ge=5, le=300)


class LoggingSettings(BaseModel):
    """
    Logging configuration.
    
    Attributes:
        level: Log level
        file: Log file path (None for console only)
        telemetry_dir: Directory for JSONL telemetry (None disables the sink)
    """
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = None
    telemetry_dir: Optional[str] = None


class Settings(BaseSettings):
    """
    Root settings container - single source of truth for all configuration.
    
    Settings are loaded in this priority order (highest to lowest):
    1. Explicit values passed to constructor
    2. Environment variables (prefixed with AUTOBROWSE__)
    3. Config file (YAML)
    4. Default values
    
    Example:
        >>> settings = Settings()  # Load from env vars
        >>> settings = Settings(browser=BrowserSettings(headless=False))  # Override
    """
    
    model_config = SettingsConfigDict(
        env_prefix="AUTOBROWSE__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )
    
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    navigation: NavigationSettings = Field(default_factory=NavigationSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    policy: PolicySettings = Field(default_factory=PolicySettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    perception: PerceptionSettings = Field(default_factory=PerceptionSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
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
