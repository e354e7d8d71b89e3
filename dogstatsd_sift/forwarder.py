"""
Encaminhamento das requests para a API de origem
A request segue byte a byte e a response volta sem ser inspecionada
"""
from typing import List, Optional, Tuple

import httpx
import structlog

from .interceptor import ProxyRequest

logger = structlog.get_logger(__name__)

# Headers que valem apenas para a conexão atual
HOP_BY_HOP_HEADERS = frozenset([
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'proxy-connection', 'te', 'trailer', 'transfer-encoding', 'upgrade'
])


class UpstreamForwarder:
    """Cliente HTTP compartilhado que encaminha as requests para a origem"""

    def __init__(
        self,
        origin_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.origin_url = origin_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.origin_url,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            transport=transport
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Fecha o cliente HTTP"""
        await self.client.aclose()

    def _request_headers(self, request: ProxyRequest) -> httpx.Headers:
        headers = httpx.Headers([
            (key, value)
            for key, value in request.headers.multi_items()
            if key.lower() not in HOP_BY_HOP_HEADERS and key.lower() != 'host'
        ])

        if request.client_host:
            prior = headers.get('X-Forwarded-For')
            headers['X-Forwarded-For'] = f"{prior}, {request.client_host}" if prior else request.client_host

        return headers

    async def forward(self, request: ProxyRequest) -> httpx.Response:
        """
        Envia a request para a origem e retorna a response em modo stream.

        O chamador é responsável por fechar a response. Erros de transporte
        (httpx.HTTPError) são propagados; não há retry.
        """
        url = request.path if not request.query else f"{request.path}?{request.query}"

        upstream_request = self.client.build_request(
            request.method,
            url,
            headers=self._request_headers(request),
            content=request.content
        )

        response = await self.client.send(upstream_request, stream=True)

        logger.debug(
            "Request encaminhada",
            method=request.method,
            path=request.path,
            status=response.status_code,
            outcome=request.outcome.value
        )
        return response


def relay_headers(response: httpx.Response) -> List[Tuple[bytes, bytes]]:
    """Headers da response da origem, sem os hop-by-hop, preservando duplicados"""
    return [
        (key.lower(), value)
        for key, value in response.headers.raw
        if key.decode('latin-1').lower() not in HOP_BY_HOP_HEADERS
    ]
