"""
Pipeline de transformação do payload de séries
Decodifica, aplica as regras e codifica de volta, devolvendo um único resultado
"""
from dataclasses import dataclass
from typing import Optional

import structlog

from . import codec
from .exceptions import SiftError
from .metrics import PAYLOAD_SIZE, PIPELINE_TIME
from .mutator import HOST_OVERRIDE, apply_rules
from .rules import RuleSet

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Resultado do pipeline: body novo em caso de sucesso, ou o motivo da falha"""
    body: Optional[bytes] = None
    reason: Optional[str] = None
    error: Optional[SiftError] = None
    series_in: int = 0
    series_out: int = 0
    rules_applied: bool = False

    @property
    def ok(self) -> bool:
        return self.body is not None

    @classmethod
    def failure(cls, reason: str, error: Optional[SiftError] = None) -> 'PipelineResult':
        return cls(reason=reason, error=error)


class SeriesProcessor:
    """Executa decode -> mutação -> encode sobre o body de uma request"""

    def __init__(self, rule_set: Optional[RuleSet], host_override: str = HOST_OVERRIDE):
        self.rule_set = rule_set
        self.host_override = host_override

    def process(self, body: bytes) -> PipelineResult:
        """Processa o body comprimido e nunca levanta exceções do pipeline"""
        with PIPELINE_TIME.time():
            try:
                PAYLOAD_SIZE.labels(stage='received').observe(len(body))

                batch = codec.decode(body)
                series_in = len(batch.series)

                if self.rule_set is not None:
                    batch = apply_rules(batch, self.rule_set, self.host_override)

                encoded = codec.encode(batch)
                PAYLOAD_SIZE.labels(stage='forwarded').observe(len(encoded))

            except SiftError as e:
                return PipelineResult.failure(_reason_for(e), e)

        return PipelineResult(
            body=encoded,
            series_in=series_in,
            series_out=len(batch.series),
            rules_applied=self.rule_set is not None
        )


def _reason_for(error: SiftError) -> str:
    """Nome do estágio que falhou, em snake_case, para logs e métricas"""
    name = type(error).__name__
    return ''.join(f'_{c.lower()}' if c.isupper() else c for c in name).lstrip('_')
