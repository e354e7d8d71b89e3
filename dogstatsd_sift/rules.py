"""
Conjunto de regras de redação de métricas
Construído uma única vez a partir da configuração e compartilhado, somente leitura, entre as requests
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Tuple

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Rule:
    """Regra aplicada às métricas com nome exatamente igual a `name`"""
    name: str
    remove_metric: bool = False
    remove_tags: FrozenSet[str] = field(default_factory=frozenset)
    remove_host: bool = False


class RuleSet:
    """Regras ordenadas por métrica mais o override global de host"""

    def __init__(self, rules: Iterable[Rule] = (), remove_all_host: bool = False):
        self._rules: Tuple[Rule, ...] = tuple(rules)
        self._remove_all_host = remove_all_host

        index: Dict[str, list] = defaultdict(list)
        for rule in self._rules:
            index[rule.name].append(rule)
        self._index: Dict[str, Tuple[Rule, ...]] = {name: tuple(matches) for name, matches in index.items()}

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def remove_all_host(self) -> bool:
        return self._remove_all_host

    def rules_for(self, metric_name: str) -> Tuple[Rule, ...]:
        """Regras que casam com o nome da métrica, na ordem declarada"""
        return self._index.get(metric_name, ())

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet(rules={len(self._rules)}, remove_all_host={self._remove_all_host})"

    @classmethod
    def from_config(cls, config) -> 'RuleSet':
        """Cria o RuleSet a partir da configuração YAML já validada"""
        rules = [
            Rule(
                name=metric.name,
                remove_metric=metric.remove_metric,
                remove_tags=frozenset(metric.remove_tags),
                remove_host=metric.remove_host,
            )
            for metric in config.metrics
        ]

        duplicated = sorted(name for name, count in Counter(rule.name for rule in rules).items() if count > 1)
        if duplicated:
            # Permitido: as regras são avaliadas na ordem em que foram declaradas
            logger.warning("Regras duplicadas para a mesma métrica", metrics=duplicated)

        rule_set = cls(rules, remove_all_host=config.remove_all_host)
        logger.info("Regras carregadas", rules=len(rule_set), remove_all_host=rule_set.remove_all_host)
        return rule_set
