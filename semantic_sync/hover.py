"""
hover.py - Popup "o que está sob o cursor" para tokens semânticos

Propósito:
    Lista, para cada servidor, o grupo de highlight do span que cobre a
    posição consultada. Conteúdo do popup de inspeção do editor.

Notas de implementação:
    - Formata resposta como Markdown via MarkupContent
    - Sem spans na posição, retorna None (o host não abre o popup)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from lsprotocol.types import Hover, MarkupContent, MarkupKind, Position, Range

from semantic_sync.decoder import HighlightSpan

logger = logging.getLogger(__name__)


def format_hits(hits: List[Tuple[str, HighlightSpan]]) -> str:
    """Markdown com um item por servidor: grupo, texto coberto e origem."""
    lines = ["# Semantic", ""]
    for server, span in hits:
        lines.append(f"* `{span.highlight_group}` `{span.text}` ({server})")
    return "\n".join(lines)


def compute_hover(source, document: str, position: Position) -> Optional[Hover]:
    """
    Computa o hover de tokens semânticos na posição.

    Args:
        source: SemanticSync (ordem de registro) ou HighlightStore
        document: URI do documento
        position: Posição do cursor (0-based, offsets nativos)

    Returns:
        Hover com MarkupContent ou None se nenhum span cobre a posição
    """
    hits = source.query_at(document, position.line, position.character)
    if not hits:
        return None

    first = hits[0][1]
    return Hover(
        contents=MarkupContent(kind=MarkupKind.Markdown, value=format_hits(hits)),
        range=Range(
            start=Position(line=first.line, character=first.start),
            end=Position(line=first.line, character=first.end),
        ),
    )
