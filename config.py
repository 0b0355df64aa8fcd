"""
config.py — Single source of truth for all page companion settings.

pydantic-settings reads .env at import time and environment variables
override it. Every field has a default that works against a local
OpenAI-compatible server (LM Studio, llama.cpp, vLLM), so the companion
runs with zero configuration on a developer machine.

THE KNOBS THAT MATTER:

  1. Model backend:
       base_url / api_key / model — any OpenAI-compatible chat endpoint.
       reasoning_tag — reasoning models prefix their answer with a
       <think>...</think> preamble. It is stripped from every response.
       Set it to "" to disable stripping.

  2. Research budget:
       max_searches        — searches per session before the loop stops (3)
       max_search_results  — result links scraped per search (3)
       max_scrape_chars    — characters kept per scraped page
       max_context_chars   — characters of page / search text sent to the model

  3. Timeouts:
       probe_timeout_seconds  — HEAD content-type probe, short on purpose
       render_timeout_seconds — best-effort page read; a timeout still
                                extracts whatever arrived
       search_timeout_seconds — search engine results page

  4. Rate limiting (optional):
       Off by default. When enabled the orchestrator waits between
       searches: a minimum interval, a cap per sliding window, and a
       cooldown once the cap is hit.

USAGE:
  from config import settings
  print(settings.model)          # "local-model"
  print(settings.max_searches)   # 3
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Model backend (OpenAI-compatible) ─────────────────────────────────────
    base_url: str = Field(
        default="http://localhost:1234/v1",
        description="Chat completion base URL; '/chat/completions' is appended by the SDK",
    )
    api_key: str = Field(
        default="lm-studio",
        description="Bearer token for the backend — local servers accept any value",
    )
    model: str = Field(
        default="local-model",
        description="Model name sent with every chat completion request",
    )
    reasoning_tag: str = Field(
        default="think",
        description="Tag name of the reasoning preamble to strip ('' disables stripping)",
    )
    json_mode: bool = Field(
        default=False,
        description="Send response_format=json_object for structured calls (not all servers support it)",
    )
    inference_timeout_seconds: float = Field(
        default=120.0,
        description="Per-request timeout for the model backend",
    )
    inference_max_retries: int = Field(
        default=2,
        ge=0,
        description="SDK-level retries for transient backend failures",
    )

    # ── Research loop ─────────────────────────────────────────────────────────
    max_searches: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Searches per session before the loop is marked complete",
    )
    max_context_chars: int = Field(
        default=10000,
        ge=500,
        description="Characters of page content / new search text sent to the model",
    )

    # ── Search engine ─────────────────────────────────────────────────────────
    search_engine_url: str = Field(
        default="https://html.duckduckgo.com/html/?q={query}",
        description="Results page URL template — {query} is replaced with the URL-encoded query",
    )
    max_search_results: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Result links extracted and scraped per search",
    )
    search_timeout_seconds: float = Field(
        default=15.0,
        description="Max seconds to load the search engine results page",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        description="User-Agent sent to the search engine and scraped pages",
    )

    # ── Page scraping ─────────────────────────────────────────────────────────
    # WHY A SHORT PROBE TIMEOUT:
    #   The HEAD probe only answers "is this HTML?". A server that can't
    #   answer that in a couple of seconds is skipped: fail closed.
    probe_timeout_seconds: float = Field(
        default=2.5,
        description="Timeout for the HEAD content-type probe",
    )
    probe_attempts: int = Field(
        default=1,
        ge=1,
        description="Attempts for the HEAD probe (transport errors only)",
    )
    render_timeout_seconds: float = Field(
        default=10.0,
        description="Best-effort page read timeout — partial content is still extracted",
    )
    scrape_attempts: int = Field(
        default=1,
        ge=1,
        description="Attempts for one page scrape (transport errors only)",
    )
    max_scrape_chars: int = Field(
        default=8192,
        ge=256,
        description="Characters kept per scraped page",
    )
    max_download_bytes: int = Field(
        default=2_000_000,
        description="Bytes read from one page before the read stops",
    )
    scrape_concurrency: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Pages scraped in parallel within one search",
    )

    # ── Content provider ──────────────────────────────────────────────────────
    content_fetch_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts to read the observed page until its location matches",
    )
    content_fetch_backoff_seconds: float = Field(
        default=0.5,
        description="Fixed wait between content fetch attempts",
    )
    content_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for one HTTP content fetch of the observed page",
    )

    # ── Rate limiting (optional policy) ───────────────────────────────────────
    rate_limit_enabled: bool = Field(
        default=False,
        description="Enable the sliding-window search rate limiter",
    )
    min_search_interval_seconds: float = Field(
        default=5.0,
        description="Minimum gap between two searches",
    )
    max_searches_per_window: int = Field(
        default=10,
        ge=1,
        description="Searches allowed inside one sliding window",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        description="Length of the sliding window",
    )
    rate_limit_cooldown_seconds: float = Field(
        default=30.0,
        description="Minimum wait once the window cap is reached",
    )

    # ── Observability ─────────────────────────────────────────────────────────
    trace_dir: str = Field(
        default="logs/traces",
        description="Directory for per-loop JSON traces",
    )
    save_traces: bool = Field(
        default=False,
        description="Write a JSON trace after every loop run",
    )


# Module-level singleton — import this everywhere, never instantiate Settings again.
settings = Settings()
