"""Application settings loaded from the environment, ``.env`` or a JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ESCALATION_TOPICS = [
    # components
    "circuit",
    "circuito",
    "microcontroller",
    "microcontrolador",
    "sensor",
    "capacitor",
    "transistor",
    "diode",
    "diodo",
    "resistor",
    "inductor",
    "oscillator",
    "relay",
    "fuse",
    "crystal",
    # documentation
    "datasheet",
    "pinout",
    "schematic",
    "esquemático",
    # electrical properties
    "voltage",
    "tensão",
    "current",
    "corrente",
    "resistance",
    "resistência",
    "frequency",
    # maintenance
    "repair",
    "reparo",
    "solder",
    "solda",
    "diagnostic",
    "troubleshooting",
    "multimeter",
    "oscilloscope",
    # buses and firmware
    "uart",
    "spi",
    "i2c",
    "firmware",
    "bootloader",
]

DEFAULT_REFERENCE_FACTS = [
    "VS1: approximately 2.05 V (nominal range 1.95 V to 2.15 V).",
    "VPA: typically 3.3 V (nominal range 3.2 V to 3.4 V).",
    "VDDRAM: RAM supply voltage, typically 1.2 V (acceptable range 1.15 V to 1.25 V).",
    "VCORE: processor core voltage, between 0.6 V and 1.2 V depending on load and configuration.",
]


class Settings(BaseSettings):
    """Runtime configuration for the support assistant.

    Every field can be set through an environment variable prefixed with
    ``SUPPORT_ASSISTANT_`` (``SUPPORT_ASSISTANT_SIMILARITY_THRESHOLD=0.75``).
    Provider keys use their conventional names (``OPENAI_API_KEY``,
    ``PERPLEXITY_API_KEY``) and are kept as ``SecretStr`` so they never show
    up in reprs or logs.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUPPORT_ASSISTANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Providers
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    perplexity_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("PERPLEXITY_API_KEY", "perplexity_api_key"),
    )
    embedding_model: str = "text-embedding-3-small"
    generation_model: str = "gpt-4o"
    fallback_generation_model: Optional[str] = "gpt-4o-mini"
    external_search_model: str = "sonar"
    provider_timeout_seconds: float = 30.0

    # Storage
    store_dir: Path = Path("data/store")
    use_vector_store: bool = True

    # Chunking
    max_chunk_size: int = 1500
    chunk_overlap: int = 150
    default_language: str = "en"

    # Retrieval
    similarity_threshold: float = 0.7
    keyword_boost: float = 0.05
    max_results: int = 5
    merged_content_cap: int = 2500
    context_char_budget: int = 12000
    tier_timeout_seconds: float = 20.0
    static_reference_facts: List[str] = Field(default_factory=lambda: list(DEFAULT_REFERENCE_FACTS))

    # Generation
    temperature: float = 0.3
    behavior_instructions: str = ""

    # Escalation
    escalation_enabled: bool = True
    escalation_topics: List[str] = Field(default_factory=lambda: list(DEFAULT_ESCALATION_TOPICS))

    # Health monitor
    stale_threshold_minutes: int = 30
    monitor_interval_minutes: float = 10.0
    monitor_initial_delay_seconds: float = 60.0

    log_level: str = "INFO"

    @field_validator("max_chunk_size")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"max_chunk_size must be >= 50, got {v}")
        return v

    @field_validator("similarity_threshold")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"similarity_threshold must be within 0..1, got {v}")
        return v

    @model_validator(mode="after")
    def _overlap_smaller_than_chunk(self) -> "Settings":
        if not 0 <= self.chunk_overlap < self.max_chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than max_chunk_size")
        return self


def _load_config(path: Path | None) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_settings(path: Path | None = None, **overrides: Any) -> Settings:
    """Build settings from the environment, then a JSON file, then keyword overrides."""

    values = _load_config(path)
    values.update(overrides)
    return Settings(**values)
