"""
Modelos do payload de séries recebido em /api/v1/series
Campos opcionais vazios são omitidos na serialização, no mesmo formato que o agent envia
"""
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# [timestamp UNIX, valor]; valores inteiros também trafegam como float
DataPoint = Tuple[float, float]

REQUIRED_FIELDS = ('metric', 'points')


def _is_empty(value: Any) -> bool:
    return value is None or value == '' or value == 0 or value == []


class Metric(BaseModel):
    """Série de pontos de uma métrica"""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    name: str = Field(alias='metric')
    points: List[DataPoint]
    type: Optional[str] = None
    host: Optional[str] = None
    tags: Optional[List[str]] = None
    unit: Optional[str] = None
    source_type_name: Optional[str] = None
    interval: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serializa a métrica omitindo campos opcionais vazios"""
        payload = self.model_dump(by_alias=True)
        return {
            key: value
            for key, value in payload.items()
            if key in REQUIRED_FIELDS or not _is_empty(value)
        }


class Batch(BaseModel):
    """Payload completo de uma submissão de séries"""

    series: List[Metric] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        if not self.series:
            return {}
        return {'series': [metric.to_wire() for metric in self.series]}

    def metric_names(self) -> List[str]:
        return [metric.name for metric in self.series]
