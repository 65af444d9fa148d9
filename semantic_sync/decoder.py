"""
decoder.py - Decodificação do stream de tokens semânticos

Propósito:
    Transforma o array plano de inteiros enviado pelo servidor em spans de
    highlight com posição absoluta, tipo e modificadores resolvidos.

Formato do stream (5 inteiros por token):
    [deltaLine, deltaStartChar, length, tokenType, tokenModifiers]

Componentes principais:
    - HighlightSpan: Span renderizável com metadados (servidor, texto coberto)
    - decode: stream relativo → lista de HighlightSpan
    - encode: tokens absolutos → stream relativo (inverso, para fixtures e dumps)

Notas de implementação:
    - Decodificação é um fold estrito da esquerda para a direita: a posição
      absoluta do registro i depende de todos os anteriores
    - O cursor (line, col) fica em unidades do servidor; a conversão para
      offsets nativos não volta para o cursor
    - Registro malformado é pulado sem abortar o restante; o cursor avança
      mesmo assim
    - Fragmento final com menos de 5 inteiros é descartado com warning
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from semantic_sync.encoding import INVALID_OFFSET, EncodingLike, convert_offset
from semantic_sync.legend import Legend, highlight_group, modifier_names, type_name

logger = logging.getLogger(__name__)

RECORD_SIZE = 5

# LineProvider: (document, line_index) -> texto da linha; pode levantar exceção
LineProvider = Callable[[str, int], str]

# RawToken: (line_0based, col_0based, length, token_type_index, modifier_bitmask)
RawToken = Tuple[int, int, int, int, int]


@dataclass(frozen=True)
class HighlightSpan:
    """Span de highlight com posição absoluta em offsets nativos."""

    line: int
    start: int
    end: int
    token_type: str
    modifiers: Tuple[str, ...] = ()
    server: str = ""
    text: str = ""

    @property
    def highlight_group(self) -> str:
        return highlight_group(self.token_type, self.modifiers)

    def contains(self, line: int, col: int) -> bool:
        return line == self.line and self.start <= col < self.end


def decode(
    data: Sequence[int],
    legend: Legend,
    document: str,
    line_provider: LineProvider,
    encoding: EncodingLike = None,
    server: str = "",
) -> List[HighlightSpan]:
    """
    Decodifica um stream completo em spans de highlight.

    Args:
        data: Stream plano (múltiplo de 5)
        legend: Legend do servidor que gerou o stream
        document: Identificador do documento (URI)
        line_provider: Acesso ao texto atual de cada linha
        encoding: Encoding de posição do servidor
        server: Nome do servidor de origem (vai para o span)

    Returns:
        Spans na mesma ordem dos registros de entrada
    """
    usable = len(data) - len(data) % RECORD_SIZE
    if usable != len(data):
        logger.warning(
            f"Stream de {len(data)} inteiros não é múltiplo de {RECORD_SIZE} "
            f"({document}); descartando fragmento final"
        )

    spans: List[HighlightSpan] = []
    line = 0
    col = 0
    cached_line: Optional[int] = None
    cached_text = ""

    for i in range(0, usable, RECORD_SIZE):
        delta_line, delta_col, length, type_index, mask = data[i:i + RECORD_SIZE]

        if delta_line != 0:
            col = 0
        line += delta_line
        col += delta_col
        start_col = col
        end_col = col + length

        token_type = type_name(legend, type_index)
        if token_type is None:
            logger.debug(f"Registro {i // RECORD_SIZE}: tipo {type_index} fora do legend")
            continue
        if length <= 0 or line < 0 or start_col < 0:
            logger.debug(f"Registro {i // RECORD_SIZE}: posição inválida ({line}, {start_col}, {length})")
            continue

        if cached_line != line:
            try:
                cached_text = line_provider(document, line)
            except Exception as e:
                logger.debug(f"Linha {line} indisponível em {document}: {e}")
                continue
            cached_line = line

        start = convert_offset(cached_text, start_col, encoding)
        end = convert_offset(cached_text, end_col, encoding)
        if start == INVALID_OFFSET or end == INVALID_OFFSET or end > len(cached_text):
            logger.debug(f"Registro {i // RECORD_SIZE}: colunas fora da linha {line}")
            continue

        spans.append(
            HighlightSpan(
                line=line,
                start=start,
                end=end,
                token_type=token_type,
                modifiers=modifier_names(legend, mask),
                server=server,
                text=cached_text[start:end],
            )
        )

    return spans


def encode(tokens: Iterable[RawToken]) -> List[int]:
    """
    Ordena tokens absolutos por posição e codifica no formato relativo.

    Cada token é relativo ao anterior; deltaStartChar é absoluto quando
    o token muda de linha.
    """
    ordered = sorted(tokens, key=lambda t: (t[0], t[1]))

    data: List[int] = []
    prev_line = 0
    prev_col = 0

    for line, col, length, token_type, modifiers in ordered:
        delta_line = line - prev_line
        delta_col = col - prev_col if delta_line == 0 else col

        data.extend([delta_line, delta_col, length, token_type, modifiers])

        prev_line = line
        prev_col = col

    return data
