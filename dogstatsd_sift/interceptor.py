"""
Interceptor de requests de submissão de séries
Reescreve o body de /api/v1/series antes do encaminhamento; qualquer falha encaminha a request original
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional, Union

import httpx
import structlog
from starlette.requests import ClientDisconnect, Request

from .exceptions import BodyReadError
from .metrics import REQUESTS_INTERCEPTED
from .processor import SeriesProcessor

logger = structlog.get_logger(__name__)

CONTENT_ENCODING_HEADER = "Content-Encoding"


class Outcome(str, Enum):
    FORWARDED_UNMODIFIED = "forwarded-unmodified"
    FORWARDED_MUTATED = "forwarded-mutated"


@dataclass
class ProxyRequest:
    """Request em trânsito pelo proxy; o body só é lido quando o interceptor precisa dele"""
    method: str
    path: str
    query: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[bytes] = None
    stream: Optional[AsyncIterator[bytes]] = None
    client_host: Optional[str] = None
    outcome: Outcome = Outcome.FORWARDED_UNMODIFIED

    @classmethod
    def from_starlette(cls, request: Request) -> 'ProxyRequest':
        headers = httpx.Headers(request.headers.raw)
        has_body = "Content-Length" in headers or "Transfer-Encoding" in headers

        return cls(
            method=request.method,
            path=request.url.path,
            query=request.url.query,
            headers=headers,
            body=None if has_body else b"",
            stream=request.stream() if has_body else None,
            client_host=request.client.host if request.client else None
        )

    async def read(self) -> bytes:
        """Lê o body inteiro, guardando-o para o encaminhamento"""
        if self.body is not None:
            return self.body

        chunks = []
        stream, self.stream = self.stream, None
        try:
            if stream is not None:
                async for chunk in stream:
                    chunks.append(chunk)
        except (ClientDisconnect, RuntimeError, OSError) as e:
            error = BodyReadError(f"falha ao ler body: {e!r}")
            # Body incompleto não vira bytes: a origem recebe os mesmos chunks e a mesma
            # falha, nunca um body truncado sob o Content-Length original
            self.stream = _replay(chunks, error)
            raise error from e

        self.body = b"".join(chunks)
        return self.body

    def replace_body(self, body: bytes):
        self.body = body
        self.stream = None
        self.headers["Content-Length"] = str(len(body))
        if "Transfer-Encoding" in self.headers:
            del self.headers["Transfer-Encoding"]

    @property
    def content(self) -> Union[bytes, AsyncIterator[bytes], None]:
        """Conteúdo a encaminhar: o body já lido, ou o stream original intacto"""
        return self.body if self.body is not None else self.stream


async def _replay(chunks, error: BodyReadError):
    """Reenvia os chunks já lidos e repete a falha de leitura"""
    for chunk in chunks:
        yield chunk
    raise error


class RequestInterceptor:
    """Aplica o pipeline de séries às requests que passam pelo gate de path e encoding"""

    def __init__(
        self,
        processor: SeriesProcessor,
        ingestion_path: str = "/api/v1/series",
        content_encoding: str = "deflate"
    ):
        self.processor = processor
        self.ingestion_path = ingestion_path
        self.content_encoding = content_encoding

    def matches(self, request: ProxyRequest) -> bool:
        if request.path != self.ingestion_path:
            return False
        return request.headers.get(CONTENT_ENCODING_HEADER) == self.content_encoding

    async def intercept(self, request: ProxyRequest, log=None) -> ProxyRequest:
        """Reescreve o body da request no lugar; retorna a mesma request"""
        log = log or logger

        if not self.matches(request):
            return request

        if self.processor.rule_set is None:
            log.warning("Nenhuma configuração encontrada, payload segue sem regras")

        try:
            body = await request.read()
        except BodyReadError as e:
            return self._forward_unmodified(request, "body_read_error", e, log)

        result = self.processor.process(body)
        if not result.ok:
            return self._forward_unmodified(request, result.reason, result.error, log)

        request.replace_body(result.body)
        request.outcome = Outcome.FORWARDED_MUTATED
        REQUESTS_INTERCEPTED.labels(outcome=request.outcome.value, reason="ok").inc()

        log.info(
            "Payload de séries reescrito",
            series_in=result.series_in,
            series_out=result.series_out,
            rules_applied=result.rules_applied,
            original_bytes=len(body),
            forwarded_bytes=len(result.body)
        )
        return request

    def _forward_unmodified(self, request: ProxyRequest, reason: str, error, log) -> ProxyRequest:
        request.outcome = Outcome.FORWARDED_UNMODIFIED
        REQUESTS_INTERCEPTED.labels(outcome=request.outcome.value, reason=reason).inc()
        log.error("Falha no pipeline, encaminhando request original", reason=reason, error=str(error))
        return request
