from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # catalog_database_url: str = "postgresql+psycopg://catalog@localhost/apparel_catalog"
    catalog_database_url: str = ""

    ssactivewear_account_number: str = ""
    ssactivewear_api_key: str = ""
    ssactivewear_rest_base_url: str = "https://api.ssactivewear.com/V2"
    ssactivewear_timeout_seconds: float = 15.0
    ssactivewear_retry_count: int = 3  # tenacity attempts
    ssactivewear_live_retry_wait_seconds: float = 0.5  # request-path backoff base
    ssactivewear_api_sleep: float = 1.1  # pause between upstream calls

    # Short-lived caches; never a source of truth
    search_cache_ttl_seconds: int = 60
    live_product_cache_ttl_seconds: int = 60
    search_candidate_timeout_seconds: float | None = None
    cache_max_entries: int = 10_000

    sanmar_dip_path: str = "data/sanmar_dip.txt"
    sanmar_sdl_path: str = "data/SanMar_SDL_N.csv"
    canonical_mapping_path: str = "data/canonical_mapping.json"

    log_level: str = "INFO"

    @field_validator("catalog_database_url")
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        if v and not v.startswith(("postgresql", "sqlite")):
            raise ValueError("DB URL must start with 'postgresql' or 'sqlite'.")
        return v

    @field_validator("ssactivewear_rest_base_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with 'http://' or 'https://'.")
        return v.rstrip("/")

    @field_validator("ssactivewear_api_sleep", "ssactivewear_live_retry_wait_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Sleep interval must be zero or greater.")
        return v

    @field_validator(
        "ssactivewear_timeout_seconds",
        "search_cache_ttl_seconds",
        "live_product_cache_ttl_seconds",
        "ssactivewear_retry_count",
        "cache_max_entries",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be greater than zero.")
        return v

    @field_validator("search_candidate_timeout_seconds")
    @classmethod
    def validate_optional_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Candidate timeout must be greater than zero when set.")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)


settings = Settings()
