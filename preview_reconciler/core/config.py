from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "preview-reconciler"
    environment: str = "dev"
    review_api_base_url: str = "http://localhost:8080/api"
    review_api_key: str | None = None
    public_origin: str = "http://localhost:8080"
    custom_url_schemes: list[str] = ["zhzwdxt"]
    request_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 2.0
    empty_result_retry_seconds: float = 3.0
    empty_result_max_retries: int = 1
    poll_timeout_seconds: float | None = None
    status_synonyms_json: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "preview-reconciler"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="PREVIEW_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
