"""
Codec do payload de séries
Descomprime (zlib/deflate) e decodifica o JSON recebido, e faz o caminho inverso
"""
import json
import zlib

import structlog
from pydantic import ValidationError

from .exceptions import CompressionError, DecompressionError, EncodingError, MalformedPayloadError
from .models import Batch

logger = structlog.get_logger(__name__)


def decode(raw: bytes) -> Batch:
    """Descomprime o body e converte para um Batch"""
    try:
        inflated = zlib.decompress(raw)
    except zlib.error as e:
        raise DecompressionError(f"stream deflate inválido: {e}") from e

    try:
        data = json.loads(inflated)
    except ValueError as e:
        # JSONDecodeError e UnicodeDecodeError
        raise MalformedPayloadError(f"JSON inválido: {e}") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError(f"envelope deve ser um objeto, recebido {type(data).__name__}")

    try:
        batch = Batch.model_validate(data)
    except ValidationError as e:
        raise MalformedPayloadError(f"batch inválido: {e.error_count()} erro(s)") from e

    logger.debug("Payload decodificado", series=len(batch.series), raw_bytes=len(raw), inflated_bytes=len(inflated))
    return batch


def encode(batch: Batch) -> bytes:
    """Serializa o Batch e comprime com zlib"""
    try:
        # NaN/Infinity não são JSON válido para a API de origem
        serialized = json.dumps(batch.to_wire(), separators=(',', ':'), allow_nan=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        raise EncodingError(f"falha ao serializar batch: {e}") from e

    try:
        compressed = zlib.compress(serialized)
    except zlib.error as e:
        raise CompressionError(f"falha ao comprimir payload: {e}") from e

    return compressed
