from pydantic import BaseModel, ConfigDict, Field, SecretStr, validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional

UA_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

class HttpConfig(Section):
    timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for every upstream HTTP call")
    user_agent: str = Field(default=UA_CHROME, description="Browser identity sent to scraped pages")
    accept_language: str = Field(default="en-US,en;q=0.9", description="Accept-Language sent upstream")

class YouTubeConfig(Section):
    ytdlp_path: str = Field(default="yt-dlp", description="yt-dlp executable")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Hard limit for one yt-dlp run")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout passed to yt-dlp")
    js_runtime: Optional[str] = Field(default=None, description="JS runtime for yt-dlp (e.g. deno:/usr/local/bin/deno)")

class InstagramConfig(Section):
    upstream: Literal["scrape", "rapidapi"] = Field(default="scrape", description="Instagram upstream strategy")
    rapidapi_key: Optional[SecretStr] = Field(default=None, description="RapidAPI key")
    rapidapi_host: Optional[str] = Field(default=None, description="RapidAPI host header value")
    rapidapi_path: str = Field(default="/", description="Endpoint path on the RapidAPI host")

    @model_validator(mode="after")
    def check_rapidapi_credentials(self):
        if self.upstream == "rapidapi" and (not self.rapidapi_key or not self.rapidapi_host):
            raise ValueError("instagram.upstream=rapidapi requires rapidapi_key and rapidapi_host")
        return self

class LoggingConfig(Section):
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @validator('level')
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

class I18nConfig(Section):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "ja"], description="Supported locales")

class ApiConfig(Section):
    title: str = Field(default="Media Links API", description="API title")
    description: str = Field(default="Normalized download links for YouTube and Instagram", description="API description")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")

class Config(BaseSettings):
    """Process-wide configuration, read once from the environment"""
    model_config = SettingsConfigDict(
        env_prefix="MEDIALINKS_",
        env_nested_delimiter="__",
        frozen=True,
        extra="ignore",
    )

    http: HttpConfig = Field(default_factory=HttpConfig)
    youtube: YouTubeConfig = Field(default_factory=YouTubeConfig)
    instagram: InstagramConfig = Field(default_factory=InstagramConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

config = Config()

def get_config() -> Config:
    """FastAPI dependency returning the process-wide config"""
    return config
