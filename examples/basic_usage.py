#!/usr/bin/env python3
"""
Exemplo básico de uso do dogstatsd-sift.

Este exemplo demonstra como:
1. Verificar se o proxy está no ar
2. Enviar uma submissão de séries comprimida, como o agent faz
3. Conferir as métricas do proxy após o envio

Suba o proxy antes, apontando para a origem desejada:

    SIFT_ORIGIN_URL=https://app.datadoghq.com dogstatsd-sift --config-file examples/config.yml
"""

import asyncio
import json
import logging
import os
import time
import zlib

import httpx

# Configurar logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class SiftExample:
    """Exemplo de uso do dogstatsd-sift."""

    def __init__(self):
        # URL do proxy (ajustar conforme seu ambiente)
        self.proxy_url = os.getenv("SIFT_URL", "http://localhost:9000")
        self.api_key = os.getenv("DD_API_KEY", "")

    async def check_proxy_health(self, client: httpx.AsyncClient) -> bool:
        """Verifica se o proxy está funcionando."""
        try:
            response = await client.get(f"{self.proxy_url}/_sift/health", timeout=5.0)
        except httpx.HTTPError as e:
            logger.error(f"❌ Proxy indisponível: {e}")
            return False

        logger.info(f"✅ Proxy no ar: {response.json()}")
        return True

    def build_payload(self) -> bytes:
        """Monta o payload de séries comprimido com zlib."""
        now = time.time()
        payload = {
            "series": [
                {
                    "metric": "request.200",
                    "points": [[now, 12.0]],
                    "type": "count",
                    "host": "i-0123456789",
                    "tags": ["env:dev"]
                },
                {
                    "metric": "checkout.latency",
                    "points": [[now, 0.231]],
                    "type": "gauge",
                    "host": "i-0123456789",
                    "tags": ["env:dev", "customer_id:1234", "session:abc"]
                },
                {
                    "metric": "worker.jobs",
                    "points": [[now, 3.0]],
                    "type": "gauge",
                    "host": "i-0123456789"
                }
            ]
        }
        return zlib.compress(json.dumps(payload).encode("utf-8"))

    async def send_series(self, client: httpx.AsyncClient):
        """Envia as séries pelo proxy."""
        response = await client.post(
            f"{self.proxy_url}/api/v1/series",
            params={"api_key": self.api_key},
            content=self.build_payload(),
            headers={"Content-Encoding": "deflate", "Content-Type": "application/json"}
        )
        logger.info(f"📤 Séries enviadas, origem respondeu {response.status_code}")

    async def show_metrics_summary(self, client: httpx.AsyncClient):
        """Mostra os contadores do proxy."""
        response = await client.get(f"{self.proxy_url}/_sift/metrics")
        for line in response.text.splitlines():
            if line.startswith(("sift_requests_intercepted_total", "sift_metrics_dropped_total", "sift_tags_removed_total")):
                logger.info(f"📊 {line}")

    async def run_example(self):
        async with httpx.AsyncClient() as client:
            if not await self.check_proxy_health(client):
                return
            await self.send_series(client)
            await self.show_metrics_summary(client)


async def main():
    await SiftExample().run_example()


if __name__ == "__main__":
    asyncio.run(main())
