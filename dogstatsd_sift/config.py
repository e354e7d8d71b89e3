"""
Configurações do dogstatsd-sift
Settings do serviço via variáveis de ambiente e regras de métricas via arquivo YAML
"""
import os
from typing import List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .rules import RuleSet

logger = structlog.get_logger(__name__)


class SiftSettings(BaseSettings):
    """Configurações principais do proxy"""

    model_config = SettingsConfigDict(env_prefix="SIFT_", case_sensitive=False)

    # Configurações do servidor
    host: str = Field(default="0.0.0.0", description="Host do servidor HTTP")
    port: int = Field(default=9000, description="Porta do servidor HTTP")

    # Configurações de logging
    log_level: str = Field(default="INFO", description="Nível de log")
    log_format: str = Field(default="json", description="Formato do log")
    log_file: str = Field(default="dogstatsd_sift_request.log", description="Arquivo de log das requests")

    # Configurações da origem
    origin_url: str = Field(default="https://app.datadoghq.com", description="URL da API de origem")
    upstream_timeout: float = Field(default=30.0, description="Timeout para a origem em segundos")

    # Configurações do interceptor
    ingestion_path: str = Field(default="/api/v1/series", description="Path de ingestão de séries")
    content_encoding: str = Field(default="deflate", description="Content-Encoding esperado no payload")
    host_override: str = Field(default="dogstatsd-sift", description="Host usado nos overrides")

    # Configurações de monitoramento
    enable_metrics: bool = Field(default=True, description="Habilitar métricas Prometheus")

    config_file: Optional[str] = Field(default=None, description="Arquivo YAML com as regras")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level deve ser um de: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v not in ('json', 'console'):
            raise ValueError('log_format deve ser json ou console')
        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError('port deve estar entre 1 e 65535')
        return v


class MetricRuleConfig(BaseModel):
    """Regra de uma métrica no arquivo YAML"""
    name: str
    remove_metric: bool = False
    remove_tags: List[str] = Field(default_factory=list)
    remove_host: bool = False

    @field_validator('remove_tags', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        # `remove_tags:` sem valor no YAML vira None
        return [] if v is None else v


class SiftConfig(BaseModel):
    """Conteúdo do arquivo YAML de regras"""
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    remove_all_host: bool = False
    metrics: List[MetricRuleConfig] = Field(default_factory=list)

    @field_validator('metrics', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


def load_config(config_path: str) -> SiftConfig:
    """Carrega e valida o arquivo YAML de regras"""
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Arquivo de configuração não encontrado: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Erro ao ler arquivo de configuração {config_path}: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Arquivo de configuração {config_path} deve conter um mapeamento")

    try:
        return SiftConfig(**raw_config)
    except ValidationError as e:
        raise ConfigurationError(f"Validação da configuração falhou: {e}") from e


class ConfigManager:
    """Gerenciador de configurações: settings do ambiente mais as regras do YAML"""

    def __init__(self, config_path: Optional[str] = None, settings: Optional[SiftSettings] = None):
        self.settings = settings or SiftSettings()
        self.config_path = config_path or self.settings.config_file
        self.config: Optional[SiftConfig] = None
        self.rule_set: Optional[RuleSet] = None

        if self.config_path:
            self._load_config_file(self.config_path)

    def _load_config_file(self, config_path: str):
        """Carrega as regras; qualquer erro aqui impede o serviço de subir"""
        self.config = load_config(config_path)

        # A porta do YAML tem precedência sobre a do ambiente
        if self.config.port:
            self.settings.port = self.config.port

        self.rule_set = RuleSet.from_config(self.config)
        logger.info("Configuração carregada", path=config_path, port=self.settings.port)

    @property
    def has_rules(self) -> bool:
        return self.rule_set is not None
