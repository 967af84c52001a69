"""
crosslock/config.py

Protocol configuration.

    ProtocolConfig()                    → defaults
    ProtocolConfig.from_dict(data)      → unknown keys / bad values raise ConfigError
    ProtocolConfig.from_yaml(path)      → yaml.safe_load + from_dict

Example YAML:

    rescue_delay: 691200
    native_mint: "native"
    allow_list_authority: "authority"
    journal_path: ".crosslock/journal.jsonl"
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from crosslock.core.arith import U32_MAX
from crosslock.core.exceptions import ConfigError
from crosslock.custody.rent import StorageRent

RESCUE_DELAY = 691_200      # 8 days
NATIVE_MINT  = "native"


@dataclass
class ProtocolConfig:
    rescue_delay:             int           = RESCUE_DELAY
    native_mint:              str           = NATIVE_MINT
    lamports_per_byte_year:   int           = 3480
    exemption_threshold:      int           = 2
    account_storage_overhead: int           = 128
    allow_list_authority:     str           = "authority"
    journal_path:             Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        for name in ("rescue_delay", "lamports_per_byte_year",
                     "exemption_threshold", "account_storage_overhead"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer", {name: value})
        if self.rescue_delay > U32_MAX:
            raise ConfigError("rescue_delay must fit in 32 bits", {"rescue_delay": self.rescue_delay})
        for name in ("native_mint", "allow_list_authority"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"{name} must be a non-empty string", {name: value})
        if self.journal_path is not None and not isinstance(self.journal_path, str):
            raise ConfigError("journal_path must be a string", {"journal_path": self.journal_path})

    @property
    def rent(self) -> StorageRent:
        return StorageRent(
            lamports_per_byte_year=   self.lamports_per_byte_year,
            exemption_threshold=      self.exemption_threshold,
            account_storage_overhead= self.account_storage_overhead,
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProtocolConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping", {"type": type(data).__name__})
        known   = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError("Unknown configuration keys", {"keys": unknown})
        return cls(**data)

    @classmethod
    def from_yaml(cls, path) -> "ProtocolConfig":
        """Load configuration from a YAML file."""
        try:
            with open(Path(path), "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return asdict(self)
