"""
Configuration loader for vaultledger.

What it does:
- Reads static settings from `config/config.yaml`.
- Applies environment overrides: `VAULT_NAME`, `VAULT_CAPACITY`, `PROMETHEUS_PORT`.
- Validates the result using Pydantic models.

Where it is used:
- Called by `vaultledger.main` to build a `Settings` object for runtime.

Key outputs:
- `Settings` model with the vault section (name, capacity in smallest units),
  metrics port and journal locations.
"""

import os
import yaml
from typing import Any, Dict
from pydantic import BaseModel, Field, field_validator


class VaultConfig(BaseModel):
    """Ledger construction parameters. Capacity is fixed for the ledger's lifetime."""
    name: str = "default"
    capacity: int = Field(ge=0, le=2**256 - 1)

    @field_validator("name")
    @classmethod
    def not_empty(cls, v):
        if not v:
            raise ValueError("vault name required")
        return v


class MetricsConfig(BaseModel):
    port: int = 8000


class JournalConfig(BaseModel):
    path: str = "data/journal/vault.jsonl"
    parquet_dir: str = "data"


class Settings(BaseModel):
    """Runtime settings assembled from YAML + environment variables."""
    vault: VaultConfig
    metrics: MetricsConfig = MetricsConfig()
    journal: JournalConfig = JournalConfig()


def load_settings(path: str = "config/config.yaml") -> Settings:
    """Load YAML config, apply env-var overrides, and return Settings."""
    with open(path, "r") as f:
        config: Dict[str, Any] = yaml.safe_load(f) or {}
    vault = dict(config.get("vault") or {})
    metrics = dict(config.get("metrics") or {})
    journal = dict(config.get("journal") or {})
    if os.getenv("VAULT_NAME"):
        vault["name"] = os.environ["VAULT_NAME"]
    if os.getenv("VAULT_CAPACITY"):
        vault["capacity"] = int(os.environ["VAULT_CAPACITY"])
    if os.getenv("PROMETHEUS_PORT"):
        metrics["port"] = int(os.environ["PROMETHEUS_PORT"])
    if "capacity" not in vault:
        raise ValueError(f"Missing required setting vault.capacity in {path} (or env VAULT_CAPACITY)")
    return Settings(
        vault=VaultConfig(**vault),
        metrics=MetricsConfig(**metrics),
        journal=JournalConfig(**journal),
    )
