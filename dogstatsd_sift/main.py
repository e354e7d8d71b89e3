"""
Aplicação principal do dogstatsd-sift
Coordena o interceptor de séries, o encaminhamento para a origem e o monitoramento
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from . import __version__
from .config import ConfigManager, SiftSettings
from .exceptions import BodyReadError, ConfigurationError
from .forwarder import UpstreamForwarder, relay_headers
from .interceptor import CONTENT_ENCODING_HEADER, ProxyRequest, RequestInterceptor
from .metrics import REQUESTS_RECEIVED, UPSTREAM_ERRORS, record_service_info, render_latest
from .processor import SeriesProcessor

logger = structlog.get_logger(__name__)

# Prefixo reservado para os endpoints do próprio proxy; todo o resto vai para a origem
ADMIN_PREFIX = "/_sift"

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def configure_logging(settings: SiftSettings):
    """Configura structlog sobre o logging padrão, em stdout e no arquivo de requests"""
    handlers = [logging.StreamHandler(sys.stdout)]

    file_error = None
    if settings.log_file:
        try:
            handlers.append(logging.FileHandler(settings.log_file, mode='a', encoding='utf-8'))
        except OSError as e:
            file_error = e

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(message)s",
        handlers=handlers,
        force=True
    )

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if file_error:
        logger.info("Falha ao abrir arquivo de log, usando apenas stdout", path=settings.log_file, error=str(file_error))


def request_log_fields(request: Request) -> dict:
    """Campos de contexto registrados em todo log de uma request"""
    headers = request.headers
    return {
        "method": request.method,
        "path": request.url.path,
        "raw_query": request.url.query,
        "host": request.url.hostname,
        "hostname": headers.get("host"),
        "content_encoding": headers.get(CONTENT_ENCODING_HEADER),
        "x_forwarded_for": headers.get("x-forwarded-for"),
        "accept_encoding": headers.get("accept-encoding"),
        "content_type": headers.get("content-type"),
        "dd_agent_version": headers.get("dd-agent-version"),
        "user_agent": headers.get("user-agent"),
    }


class SiftApp:
    """Aplicação principal do proxy"""

    def __init__(self, config: ConfigManager, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        settings = config.settings

        self.app = FastAPI(
            title="dogstatsd-sift",
            description="Proxy que filtra e reescreve submissões de métricas antes da API do Datadog",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        self.processor = SeriesProcessor(config.rule_set, host_override=settings.host_override)
        self.interceptor = RequestInterceptor(
            self.processor,
            ingestion_path=settings.ingestion_path,
            content_encoding=settings.content_encoding
        )
        self.forwarder = UpstreamForwarder(
            settings.origin_url,
            timeout=settings.upstream_timeout,
            transport=transport
        )

        if settings.enable_metrics:
            record_service_info(settings.origin_url, settings.ingestion_path)

        self._setup_routes()

    def _setup_routes(self):
        """Configura rotas locais e a rota de proxy"""

        @self.app.get(f"{ADMIN_PREFIX}/health")
        async def health_check():
            """Health check endpoint"""
            return {
                "status": "healthy",
                "version": __version__,
                "rules_loaded": self.config.has_rules
            }

        @self.app.get(f"{ADMIN_PREFIX}/metrics")
        async def metrics():
            """Endpoint de métricas Prometheus"""
            if not self.config.settings.enable_metrics:
                return JSONResponse(status_code=404, content={"detail": "Metrics disabled"})
            content, content_type = render_latest()
            return Response(content=content, media_type=content_type)

        @self.app.api_route("/{path:path}", methods=PROXY_METHODS)
        async def proxy(request: Request, path: str):
            """Intercepta e encaminha qualquer outra request para a origem"""
            return await self.handle(request)

    async def handle(self, request: Request) -> Response:
        request_logger = logger.bind(**request_log_fields(request))
        request_logger.info("request received")
        REQUESTS_RECEIVED.labels(method=request.method).inc()

        proxy_request = ProxyRequest.from_starlette(request)
        await self.interceptor.intercept(proxy_request, log=request_logger)

        try:
            upstream = await self.forwarder.forward(proxy_request)
        except (httpx.HTTPError, BodyReadError) as e:
            UPSTREAM_ERRORS.inc()
            request_logger.error("Erro ao encaminhar request para a origem", error=str(e))
            return JSONResponse(status_code=502, content={"detail": "Bad Gateway"})

        relay = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose)
        )
        relay.raw_headers = relay_headers(upstream)
        return relay

    async def shutdown(self):
        """Shutdown graceful da aplicação"""
        logger.info("Iniciando shutdown do dogstatsd-sift")
        await self.forwarder.close()
        logger.info("dogstatsd-sift finalizado")


def create_app(config: ConfigManager, transport: Optional[httpx.AsyncBaseTransport] = None) -> SiftApp:
    """Factory da aplicação"""
    return SiftApp(config, transport=transport)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="dogstatsd-sift - filtra métricas antes de enviá-las ao Datadog"
    )
    parser.add_argument(
        "--config-file",
        default=None,
        help="Caminho do arquivo YAML com as regras de métricas"
    )
    return parser.parse_args(argv)


async def main(argv=None):
    """Função principal"""
    args = parse_args(argv)

    settings = SiftSettings()
    configure_logging(settings)

    try:
        config = ConfigManager(config_path=args.config_file, settings=settings)
    except ConfigurationError as e:
        logger.error("Falha ao carregar configuração", error=str(e))
        sys.exit(1)

    if config.has_rules:
        logger.info("Configuração carregada com sucesso", rules=len(config.rule_set))
    else:
        logger.warning("Nenhum arquivo de configuração informado, métricas serão encaminhadas sem regras")

    sift_app = create_app(config)

    server_config = uvicorn.Config(
        sift_app.app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False
    )
    server = uvicorn.Server(server_config)

    logger.info("Iniciando servidor HTTP", host=settings.host, port=settings.port, origin=settings.origin_url)

    try:
        await server.serve()
    except KeyboardInterrupt:
        logger.info("Interrompido pelo usuário")
    finally:
        await sift_app.shutdown()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
