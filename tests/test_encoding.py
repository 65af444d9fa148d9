"""
test_encoding.py - Testes para conversão de colunas entre encodings

Propósito:
    Validar o caminho rápido, a contagem em utf-8/utf-16 e o sentinela
    para offsets além do fim da linha.
"""

from __future__ import annotations

from lsprotocol.types import PositionEncodingKind

from semantic_sync.encoding import (
    INVALID_OFFSET,
    convert_offset,
    normalize_encoding,
)


def test_zero_offset_is_identity():
    """Offset 0 retorna 0 sem varrer a linha."""
    assert convert_offset("ação", 0, "utf-16") == 0


def test_native_encoding_is_identity():
    """utf-32 é a unidade nativa: offset inalterado."""
    assert convert_offset("ação", 3, PositionEncodingKind.Utf32) == 3


def test_ascii_utf16():
    """Em ASCII, utf-16 e code points coincidem."""
    assert convert_offset("hello world", 5, "utf-16") == 5


def test_utf16_surrogate_pair():
    """Caractere fora do BMP ocupa 2 unidades utf-16."""
    line = "a😀b"
    assert convert_offset(line, 1, "utf-16") == 1
    assert convert_offset(line, 3, "utf-16") == 2
    assert convert_offset(line, 4, "utf-16") == 3


def test_utf16_offset_inside_surrogate_rounds_up():
    """Offset no meio do par substituto arredonda para o fim do caractere."""
    assert convert_offset("a😀b", 2, "utf-16") == 2


def test_utf8_multibyte():
    """'ç' e 'ã' ocupam 2 bytes em utf-8."""
    line = "ação x"
    assert convert_offset(line, 3, "utf-8") == 2  # "aç"
    assert convert_offset(line, 6, "utf-8") == 4  # "ação"
    assert convert_offset(line, 8, "utf-8") == 6


def test_offset_past_end_returns_sentinel():
    """Offset além da linha retorna INVALID_OFFSET, sem exceção."""
    assert convert_offset("abc", 4, "utf-16") == INVALID_OFFSET
    assert convert_offset("", 1, "utf-8") == INVALID_OFFSET


def test_offset_at_end_is_valid():
    assert convert_offset("abc", 3, "utf-16") == 3


def test_negative_offset_returns_sentinel():
    assert convert_offset("abc", -1, "utf-8") == INVALID_OFFSET


def test_convert_to_utf8_native():
    """Host com unidade nativa em bytes."""
    assert convert_offset("ação", 4, "utf-16", native="utf-8") == 6


def test_normalize_encoding():
    assert normalize_encoding(None) == "utf-16"
    assert normalize_encoding(PositionEncodingKind.Utf8) == "utf-8"
    assert normalize_encoding("UTF-32") == "utf-32"
    assert normalize_encoding("latin-1") == "utf-16"
