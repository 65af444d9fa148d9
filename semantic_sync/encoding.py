"""
encoding.py - Conversão de colunas entre encodings de posição

Propósito:
    Servidores LSP contam colunas em unidades de utf-16 (padrão), utf-8 ou
    utf-32. O host indexa texto em code points (índices de str Python).
    Este módulo mapeia um offset do servidor para o offset nativo do host.

Componentes principais:
    - convert_offset: offset em unidades do servidor → offset nativo

Notas de implementação:
    - Caminho rápido: offset 0 ou encoding igual ao nativo retorna o próprio offset
    - Offset no meio de um caractere multi-unidade arredonda para o fim dele
    - Offset além do fim da linha retorna INVALID_OFFSET (-1), sem exceção;
      o chamador deve pular o span
"""

from __future__ import annotations

import logging
from typing import Union

from lsprotocol.types import PositionEncodingKind

logger = logging.getLogger(__name__)

# Índices de str Python são code points
NATIVE_ENCODING = PositionEncodingKind.Utf32.value
DEFAULT_ENCODING = PositionEncodingKind.Utf16.value

INVALID_OFFSET = -1

_KNOWN_ENCODINGS = frozenset(kind.value for kind in PositionEncodingKind)

EncodingLike = Union[PositionEncodingKind, str, None]


def normalize_encoding(encoding: EncodingLike) -> str:
    """Normaliza PositionEncodingKind/str/None para o nome do encoding."""
    if encoding is None:
        return DEFAULT_ENCODING
    name = getattr(encoding, "value", encoding)
    if isinstance(name, str):
        name = name.lower()
        if name in _KNOWN_ENCODINGS:
            return name
    logger.warning(f"Encoding desconhecido '{encoding}', usando {DEFAULT_ENCODING}")
    return DEFAULT_ENCODING


def _char_units(char: str, encoding: str) -> int:
    if encoding == "utf-8":
        return len(char.encode("utf-8"))
    if encoding == "utf-16":
        return 2 if ord(char) > 0xFFFF else 1
    return 1


def convert_offset(
    line_text: str,
    unit_offset: int,
    encoding: EncodingLike,
    native: EncodingLike = NATIVE_ENCODING,
) -> int:
    """
    Converte um offset em unidades de `encoding` para unidades de `native`.

    Args:
        line_text: Texto atual da linha (sem quebra de linha)
        unit_offset: Coluna contada em unidades do servidor
        encoding: Encoding de posição negociado com o servidor
        native: Unidade nativa do host (padrão: code points)

    Returns:
        Offset nativo, ou INVALID_OFFSET se unit_offset está fora da linha
    """
    source = normalize_encoding(encoding)
    target = normalize_encoding(native)

    if unit_offset == 0 or source == target:
        return unit_offset
    if unit_offset < 0:
        return INVALID_OFFSET

    consumed = 0
    produced = 0
    for char in line_text:
        consumed += _char_units(char, source)
        produced += _char_units(char, target)
        if consumed >= unit_offset:
            return produced

    return INVALID_OFFSET
