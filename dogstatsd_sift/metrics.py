"""
Métricas Prometheus do proxy
Contadores de requests, resultados do interceptor e efeitos das regras
"""
import platform
from datetime import datetime, timezone

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest

from . import __version__

REQUESTS_RECEIVED = Counter('sift_requests_received_total', 'Total requests received by the proxy', ['method'])
REQUESTS_INTERCEPTED = Counter(
    'sift_requests_intercepted_total',
    'Series submissions handled by the interceptor',
    ['outcome', 'reason']
)
UPSTREAM_ERRORS = Counter('sift_upstream_errors_total', 'Requests that could not be forwarded to the origin')

# Efeitos das regras
METRICS_DROPPED = Counter('sift_metrics_dropped_total', 'Metric series dropped by a rule', ['metric'])
TAGS_REMOVED = Counter('sift_tags_removed_total', 'Tags stripped from metric series', ['metric'])
HOSTS_OVERRIDDEN = Counter('sift_hosts_overridden_total', 'Metric series whose host was overridden')

PIPELINE_TIME = Histogram('sift_pipeline_seconds', 'Time spent decoding, mutating and encoding a payload')
PAYLOAD_SIZE = Histogram(
    'sift_payload_bytes',
    'Compressed payload size before and after mutation',
    ['stage'],
    buckets=(256, 1024, 4096, 16384, 65536, 262144, 1048576, 4194304)
)

SIFT_INFO = Info('sift', 'dogstatsd-sift service information')


def record_service_info(origin_url: str, ingestion_path: str):
    """Publica as informações estáticas do serviço"""
    SIFT_INFO.info({
        'version': __version__,
        'python_version': platform.python_version(),
        'origin_url': origin_url,
        'ingestion_path': ingestion_path,
        'start_time': datetime.now(timezone.utc).isoformat()
    })


def render_latest():
    """Retorna o corpo e o content-type da exposição Prometheus"""
    return generate_latest(), CONTENT_TYPE_LATEST
