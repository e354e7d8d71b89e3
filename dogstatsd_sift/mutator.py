"""
Motor de mutação das séries
Aplica o RuleSet a um Batch: remove métricas, remove tags e sobrescreve o host
"""
from typing import Optional

import structlog

from .metrics import HOSTS_OVERRIDDEN, METRICS_DROPPED, TAGS_REMOVED
from .models import Batch, Metric
from .rules import RuleSet

logger = structlog.get_logger(__name__)

# Valor usado no lugar do host quando uma regra de host dispara
HOST_OVERRIDE = "dogstatsd-sift"


def apply_rules(batch: Batch, rules: RuleSet, host_override: str = HOST_OVERRIDE) -> Batch:
    """
    Aplica as regras a cada métrica do batch e retorna um novo Batch.

    As métricas sobreviventes são copiadas para uma lista nova, então a remoção
    de uma série nunca afeta a iteração sobre as demais. O batch de entrada não
    é alterado e os pontos das métricas nunca são tocados.
    """
    series = []

    for metric in batch.series:
        mutated = _apply_to_metric(metric, rules, host_override)
        if mutated is not None:
            series.append(mutated)

    dropped = len(batch.series) - len(series)
    if dropped:
        logger.debug("Métricas removidas do batch", dropped=dropped, remaining=len(series))

    return Batch(series=series)


def _apply_to_metric(metric: Metric, rules: RuleSet, host_override: str) -> Optional[Metric]:
    """Retorna a métrica alterada, ou None quando uma regra pede a remoção"""
    tags = metric.tags
    host = metric.host

    for rule in rules.rules_for(metric.name):
        if rule.remove_metric:
            METRICS_DROPPED.labels(metric=metric.name).inc()
            return None

        if rule.remove_tags and tags:
            kept = [tag for tag in tags if tag not in rule.remove_tags]
            if len(kept) != len(tags):
                TAGS_REMOVED.labels(metric=metric.name).inc(len(tags) - len(kept))
            tags = kept

        if rule.remove_host:
            host = host_override

    # Override global sempre vence, depois de todas as regras
    if rules.remove_all_host:
        host = host_override

    if tags is metric.tags and host == metric.host:
        return metric

    if host != metric.host:
        HOSTS_OVERRIDDEN.inc()

    return metric.model_copy(update={'tags': tags, 'host': host})
