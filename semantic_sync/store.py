"""
store.py - Armazenamento de spans de highlight por (documento, servidor)

Propósito:
    Guarda a geração atual de spans de cada servidor para cada documento e
    responde consultas pontuais ("o que cobre a posição do cursor").

Componentes principais:
    - HighlightStore: Dicionário documento → servidor → spans

Notas de implementação:
    - replace troca o grupo inteiro de uma vez (sem visibilidade parcial)
    - query_at segue a ordem informada pelo chamador (ordem de registro
      dos servidores); sem ela, a ordem do primeiro replace no documento
    - clear_lines desloca os spans abaixo de uma faixa removida
    - Índice por linha reconstruído a cada replace para consultas rápidas
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from semantic_sync.decoder import HighlightSpan

logger = logging.getLogger(__name__)


class _Group:
    __slots__ = ("spans", "by_line")

    def __init__(self, spans: Tuple[HighlightSpan, ...]):
        self.spans = spans
        self.by_line: Dict[int, List[HighlightSpan]] = {}
        for span in spans:
            self.by_line.setdefault(span.line, []).append(span)


class HighlightStore:
    """Spans renderizados por documento e servidor."""

    def __init__(self):
        self._groups: dict[str, dict[str, _Group]] = {}
        self._lock = threading.Lock()

    def replace(
        self, document: str, server: str, spans: Iterable[HighlightSpan]
    ) -> Tuple[HighlightSpan, ...]:
        """Substitui atomicamente o grupo (document, server)."""
        group = _Group(tuple(spans))
        with self._lock:
            self._groups.setdefault(document, {})[server] = group
        logger.debug(f"Highlights atualizados: {document} [{server}] - {len(group.spans)} spans")
        return group.spans

    def get(self, document: str, server: str) -> Tuple[HighlightSpan, ...]:
        """Spans atuais do grupo, ou tupla vazia."""
        with self._lock:
            group = self._groups.get(document, {}).get(server)
        return group.spans if group else ()

    def clear_lines(
        self,
        document: str,
        server: str,
        first_line: int,
        last_line: int,
        new_last_line: Optional[int] = None,
    ) -> Tuple[HighlightSpan, ...]:
        """
        Remove spans em [first_line, last_line) e retorna o grupo restante.

        Com new_last_line, spans abaixo da faixa removida são deslocados
        para as linhas que ocupam no texto novo.
        """
        shift = 0 if new_last_line is None else new_last_line - last_line
        with self._lock:
            group = self._groups.get(document, {}).get(server)
            if not group:
                return ()
            spans = []
            for span in group.spans:
                if first_line <= span.line < last_line:
                    continue
                if shift and span.line >= last_line:
                    span = replace(span, line=span.line + shift)
                spans.append(span)
            kept = _Group(tuple(spans))
            self._groups[document][server] = kept
        return kept.spans

    def query_at(
        self,
        document: str,
        line: int,
        col: int,
        order: Optional[Iterable[str]] = None,
    ) -> List[Tuple[str, HighlightSpan]]:
        """
        Para cada servidor do documento, o primeiro span que contém (line, col).

        Args:
            order: Ordem dos servidores no resultado; sem ela, ordem do
                primeiro replace no documento

        Returns:
            Lista de (servidor, span)
        """
        with self._lock:
            by_server = self._groups.get(document, {})
            if order is None:
                groups = list(by_server.items())
            else:
                groups = [(name, by_server[name]) for name in order if name in by_server]

        hits = []
        for server, group in groups:
            for span in group.by_line.get(line, ()):
                if span.contains(line, col):
                    hits.append((server, span))
                    break
        return hits

    def discard(self, document: str, server: Optional[str] = None) -> None:
        """Remove o grupo de um servidor, ou todos os grupos do documento."""
        with self._lock:
            if server is None:
                removed = self._groups.pop(document, None) is not None
            else:
                groups = self._groups.get(document, {})
                removed = groups.pop(server, None) is not None
                if not groups:
                    self._groups.pop(document, None)
        if removed:
            logger.info(f"Highlights descartados: {document}" + (f" [{server}]" if server else ""))

    def documents(self) -> List[str]:
        with self._lock:
            return list(self._groups)

    def servers(self, document: str) -> List[str]:
        with self._lock:
            return list(self._groups.get(document, {}))
