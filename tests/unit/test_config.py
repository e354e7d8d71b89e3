#!/usr/bin/env python3
"""
Testes unitários para configuração e RuleSet.
"""

import pytest
from pydantic import ValidationError

from dogstatsd_sift.config import ConfigManager, SiftConfig, SiftSettings, load_config
from dogstatsd_sift.exceptions import ConfigurationError
from dogstatsd_sift.rules import Rule, RuleSet

GOOD_CONFIG = """
port: 9000
remove_all_host: true
metrics:
  - name: request.200
    remove_metric: true
    remove_tags:
      - some-tags
    remove_host: true
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "good_config.yml"
    path.write_text(GOOD_CONFIG)
    return str(path)


class TestLoadConfig:
    """Testes para o carregamento do YAML de regras."""

    def test_parse_valid_file(self, config_file):
        """Testa leitura de um arquivo válido."""
        config = load_config(config_file)

        assert config.port == 9000
        assert config.remove_all_host is True
        assert len(config.metrics) == 1
        assert config.metrics[0].name == "request.200"
        assert config.metrics[0].remove_metric is True
        assert config.metrics[0].remove_tags == ["some-tags"]
        assert config.metrics[0].remove_host is True

    def test_parse_missing_file(self, tmp_path):
        """Testa que um arquivo inexistente levanta ConfigurationError."""
        with pytest.raises(ConfigurationError, match="não encontrado"):
            load_config(str(tmp_path / "foo-bar.yml"))

    def test_parse_invalid_yaml(self, tmp_path):
        """Testa que YAML inválido levanta ConfigurationError."""
        path = tmp_path / "bad_config.yml"
        path.write_text("metrics:\n  - name: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_parse_invalid_schema(self, tmp_path):
        """Testa que tipos errados levantam ConfigurationError."""
        path = tmp_path / "bad_config.yml"
        path.write_text("port: abc\nmetrics:\n  - remove_metric: true\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_parse_out_of_range_port(self, tmp_path):
        """Testa que uma porta fora do intervalo válido levanta ConfigurationError."""
        path = tmp_path / "bad_port.yml"
        path.write_text("port: 70000\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_out_of_range_port_never_reaches_settings(self, tmp_path):
        """Testa que a porta inválida do YAML não sobrescreve os settings."""
        path = tmp_path / "bad_port.yml"
        path.write_text("port: 0\n")
        settings = SiftSettings(port=8125)

        with pytest.raises(ConfigurationError):
            ConfigManager(config_path=str(path), settings=settings)

        assert settings.port == 8125

    def test_parse_non_mapping(self, tmp_path):
        """Testa que um YAML que não é mapeamento levanta ConfigurationError."""
        path = tmp_path / "list.yml"
        path.write_text("- name: a\n")

        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_parse_empty_file(self, tmp_path):
        """Testa que um arquivo vazio gera configuração sem regras."""
        path = tmp_path / "empty.yml"
        path.write_text("")

        config = load_config(str(path))

        assert config.metrics == []
        assert config.remove_all_host is False

    def test_null_remove_tags(self, tmp_path):
        """Testa que remove_tags sem valor vira lista vazia."""
        path = tmp_path / "config.yml"
        path.write_text("metrics:\n  - name: a\n    remove_tags:\n")

        assert load_config(str(path)).metrics[0].remove_tags == []


class TestConfigManager:
    """Testes para o ConfigManager."""

    def test_without_config_file(self):
        """Testa que sem arquivo não há RuleSet."""
        manager = ConfigManager(settings=SiftSettings())

        assert manager.rule_set is None
        assert manager.has_rules is False

    def test_config_port_overrides_settings(self, config_file):
        """Testa que a porta do YAML tem precedência."""
        manager = ConfigManager(config_path=config_file, settings=SiftSettings(port=8125))

        assert manager.settings.port == 9000
        assert manager.rule_set.remove_all_host is True

    def test_missing_file_is_fatal(self, tmp_path):
        """Testa que erro de configuração é propagado."""
        with pytest.raises(ConfigurationError):
            ConfigManager(config_path=str(tmp_path / "missing.yml"), settings=SiftSettings())


class TestSiftSettings:
    """Testes para os settings do ambiente."""

    def test_defaults(self):
        """Testa os valores padrão."""
        settings = SiftSettings()

        assert settings.port == 9000
        assert settings.origin_url == "https://app.datadoghq.com"
        assert settings.ingestion_path == "/api/v1/series"
        assert settings.host_override == "dogstatsd-sift"

    def test_env_prefix(self, monkeypatch):
        """Testa leitura de variáveis com prefixo SIFT_."""
        monkeypatch.setenv("SIFT_PORT", "9100")
        monkeypatch.setenv("SIFT_LOG_LEVEL", "debug")

        settings = SiftSettings()

        assert settings.port == 9100
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self):
        """Testa validação do nível de log."""
        with pytest.raises(ValidationError):
            SiftSettings(log_level="verbose")


class TestRuleSet:
    """Testes para o RuleSet."""

    def test_rules_for_preserves_declared_order(self):
        """Testa que as regras de um nome voltam na ordem declarada."""
        first = Rule(name="a", remove_host=True)
        other = Rule(name="b", remove_metric=True)
        second = Rule(name="a", remove_tags=frozenset(["x"]))

        rule_set = RuleSet([first, other, second])

        assert rule_set.rules_for("a") == (first, second)
        assert rule_set.rules_for("b") == (other,)
        assert rule_set.rules_for("c") == ()
        assert len(rule_set) == 3

    def test_from_config(self):
        """Testa criação a partir da configuração."""
        config = SiftConfig(
            remove_all_host=True,
            metrics=[{"name": "a", "remove_tags": ["x", "y", "x"]}, {"name": "a", "remove_metric": True}]
        )

        rule_set = RuleSet.from_config(config)

        assert rule_set.remove_all_host is True
        assert rule_set.rules_for("a")[0].remove_tags == frozenset(["x", "y"])
        assert rule_set.rules_for("a")[1].remove_metric is True

    def test_rule_is_immutable(self):
        """Testa que regras não podem ser alteradas."""
        rule = Rule(name="a")

        with pytest.raises(AttributeError):
            rule.remove_metric = True
