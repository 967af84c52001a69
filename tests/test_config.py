"""Configuration loading and validation."""

import pytest

from crosslock import RESCUE_DELAY, ProtocolConfig, SettlementEngine, StorageRent
from crosslock.core.exceptions import ConfigError


class TestProtocolConfig:

    def test_defaults(self):
        config = ProtocolConfig()
        assert config.rescue_delay == RESCUE_DELAY == 691_200
        assert config.native_mint == "native"
        assert config.journal_path is None
        assert config.rent == StorageRent()

    def test_rent_from_config(self):
        config = ProtocolConfig(lamports_per_byte_year=1, exemption_threshold=1,
                                account_storage_overhead=0)
        assert config.rent.minimum_balance(165) == 165

    def test_default_rent_values(self):
        assert StorageRent().minimum_balance(165) == (128 + 165) * 3480 * 2

    @pytest.mark.parametrize("overrides", [
        {"rescue_delay": -1},
        {"rescue_delay": 2 ** 32},
        {"rescue_delay": True},
        {"exemption_threshold": "2"},
        {"native_mint": ""},
        {"allow_list_authority": None},
        {"journal_path": 5},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigError):
            ProtocolConfig(**overrides)

    def test_from_dict(self):
        config = ProtocolConfig.from_dict({"rescue_delay": 60, "native_mint": "sol"})
        assert config.rescue_delay == 60
        assert config.native_mint == "sol"

    def test_from_dict_empty(self):
        assert ProtocolConfig.from_dict(None) == ProtocolConfig()

    def test_unknown_keys(self):
        with pytest.raises(ConfigError) as exc:
            ProtocolConfig.from_dict({"rescue_dealy": 60})
        assert exc.value.details["keys"] == ["rescue_dealy"]

    def test_non_mapping(self):
        with pytest.raises(ConfigError):
            ProtocolConfig.from_dict(["rescue_delay"])

    def test_to_dict_round_trip(self):
        config = ProtocolConfig(rescue_delay=10, journal_path="j.jsonl")
        assert ProtocolConfig.from_dict(config.to_dict()) == config


class TestYaml:

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "crosslock.yaml"
        path.write_text(
            "rescue_delay: 3600\n"
            "allow_list_authority: admin\n"
            "journal_path: journal.jsonl\n",
            encoding="utf-8",
        )
        config = ProtocolConfig.from_yaml(path)
        assert config.rescue_delay == 3600
        assert config.allow_list_authority == "admin"
        assert config.journal_path == "journal.jsonl"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert ProtocolConfig.from_yaml(path) == ProtocolConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ProtocolConfig.from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rescue_delay: [1, 2\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            ProtocolConfig.from_yaml(path)

    def test_engine_uses_config(self, tmp_path):
        engine = SettlementEngine(ProtocolConfig(allow_list_authority="admin"))
        engine.allow_list.register("admin", "r1")
        assert "r1" in engine.allow_list
