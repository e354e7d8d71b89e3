"""
Exceções do dogstatsd-sift
Cada estágio do pipeline levanta a sua própria exceção para o interceptor decidir o fail-open
"""


class SiftError(Exception):
    """Erro base do serviço"""


class DecompressionError(SiftError):
    """Payload não é um stream zlib/deflate válido"""


class MalformedPayloadError(SiftError):
    """Payload descomprimido não representa um batch de séries válido"""


class EncodingError(SiftError):
    """Falha ao serializar o batch para JSON"""


class CompressionError(SiftError):
    """Falha ao comprimir o payload serializado"""


class BodyReadError(SiftError, IOError):
    """Body da request não pôde ser lido por completo"""


class ConfigurationError(SiftError):
    """Arquivo de configuração ausente ou inválido"""
