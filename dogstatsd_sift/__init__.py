"""
dogstatsd-sift

Proxy reverso para a API de séries do Datadog.
Remove métricas, remove tags e sobrescreve o host das séries antes de encaminhá-las à origem.
"""

__version__ = "1.0.0"
__description__ = "Redaction proxy for Datadog metric submissions"

from .codec import decode, encode
from .config import ConfigManager, SiftConfig, SiftSettings, load_config
from .interceptor import Outcome, ProxyRequest, RequestInterceptor
from .models import Batch, Metric
from .mutator import HOST_OVERRIDE, apply_rules
from .processor import PipelineResult, SeriesProcessor
from .rules import Rule, RuleSet

__all__ = [
    'decode',
    'encode',
    'ConfigManager',
    'SiftConfig',
    'SiftSettings',
    'load_config',
    'Outcome',
    'ProxyRequest',
    'RequestInterceptor',
    'Batch',
    'Metric',
    'HOST_OVERRIDE',
    'apply_rules',
    'PipelineResult',
    'SeriesProcessor',
    'Rule',
    'RuleSet'
]
