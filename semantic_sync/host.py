"""
host.py - Interface com a superfície de edição do host

Propósito:
    Define o que o motor de sincronização consome do editor (texto por
    linha, contador de revisão, notificações de mudança/fechamento,
    renderização de spans, posição do cursor) e fornece um host em memória
    baseado em pygls.workspace para uso pela CLI e pelos testes.

Componentes principais:
    - TextHost: Protocolo consumido por SemanticSync
    - ChangeEvent: Notificação de mudança (revisão + faixa de linhas afetada)
    - WorkspaceHost: Host em memória sobre pygls Workspace

Notas de implementação:
    - Faixas de linha seguem a convenção [first_line, last_line) no texto
      antigo e [first_line, new_last_line) no texto novo
    - Posições de edição do WorkspaceHost são em code points (utf-32),
      a unidade nativa de str
    - Revisão incrementa a cada edit e vira a version do documento pygls
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from lsprotocol.converters import get_converter
from lsprotocol.types import (
    PositionEncodingKind,
    TextDocumentContentChangeEvent,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
)
from pygls.workspace import Workspace

from semantic_sync.decoder import HighlightSpan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Mudança em um documento."""

    document: str
    revision: int
    first_line: int
    last_line: int
    new_last_line: int

    @property
    def removed_lines(self) -> bool:
        return self.new_last_line < self.last_line


ChangeHandler = Callable[[ChangeEvent], None]
CloseHandler = Callable[[str], None]
Renderer = Callable[[str, str, Tuple[HighlightSpan, ...]], None]


class TextHost(Protocol):
    def get_line_text(self, document: str, line: int) -> str: ...

    def current_revision(self, document: str) -> int: ...

    def on_document_changed(self, document: str, handler: ChangeHandler) -> None: ...

    def on_document_closed(self, document: str, handler: CloseHandler) -> None: ...

    def render_spans(
        self, document: str, server: str, spans: Iterable[HighlightSpan]
    ) -> None: ...

    def cursor_position(self, document: str) -> Tuple[int, int]: ...


class WorkspaceHost:
    """
    Host em memória: documentos num pygls Workspace.

    Attributes:
        rendered: Último conjunto de spans renderizado por (documento, servidor)
    """

    def __init__(self, root_uri: Optional[str] = None, renderer: Optional[Renderer] = None):
        self.workspace = Workspace(
            root_uri or Path.cwd().as_uri(),
            position_encoding=PositionEncodingKind.Utf32,
        )
        self.rendered: Dict[Tuple[str, str], Tuple[HighlightSpan, ...]] = {}
        self._renderer = renderer
        self._revisions: Dict[str, int] = {}
        self._cursors: Dict[str, Tuple[int, int]] = {}
        self._change_handlers: Dict[str, List[ChangeHandler]] = {}
        self._close_handlers: Dict[str, List[CloseHandler]] = {}
        self._lock = threading.RLock()

    # --- Ciclo de vida dos documentos ---

    def open_document(self, uri: str, text: str, language_id: str = "") -> None:
        with self._lock:
            self._revisions[uri] = 0
            self.workspace.put_text_document(
                TextDocumentItem(uri=uri, language_id=language_id, version=0, text=text)
            )
        logger.info(f"Documento aberto: {uri}")

    def edit(
        self,
        uri: str,
        start: Tuple[int, int],
        end: Tuple[int, int],
        text: str,
    ) -> ChangeEvent:
        """
        Substitui o trecho [start, end) por text e notifica os handlers.

        Posições são (linha, coluna) 0-based em code points.
        """
        change = get_converter().structure(
            {
                "range": {
                    "start": {"line": start[0], "character": start[1]},
                    "end": {"line": end[0], "character": end[1]},
                },
                "text": text,
            },
            TextDocumentContentChangeEvent,
        )
        with self._lock:
            revision = self._revisions[uri] + 1
            self._revisions[uri] = revision
            self.workspace.update_text_document(
                VersionedTextDocumentIdentifier(uri=uri, version=revision), change
            )
            handlers = list(self._change_handlers.get(uri, ()))

        event = ChangeEvent(
            document=uri,
            revision=revision,
            first_line=start[0],
            last_line=end[0] + 1,
            new_last_line=start[0] + text.count("\n") + 1,
        )
        for handler in handlers:
            handler(event)
        return event

    def close_document(self, uri: str) -> None:
        with self._lock:
            self.workspace.remove_text_document(uri)
            self._revisions.pop(uri, None)
            self._cursors.pop(uri, None)
            self._change_handlers.pop(uri, None)
            handlers = self._close_handlers.pop(uri, [])
            for key in [k for k in self.rendered if k[0] == uri]:
                del self.rendered[key]
        logger.info(f"Documento fechado: {uri}")
        for handler in handlers:
            handler(uri)

    def text(self, uri: str) -> str:
        return self.workspace.get_text_document(uri).source

    def set_cursor(self, uri: str, line: int, col: int) -> None:
        self._cursors[uri] = (line, col)

    # --- TextHost ---

    def get_line_text(self, document: str, line: int) -> str:
        if document not in self._revisions:
            raise KeyError(document)
        lines = self.workspace.get_text_document(document).lines
        if line < 0 or line >= len(lines):
            raise IndexError(f"Linha {line} fora do documento ({len(lines)} linhas)")
        return lines[line].rstrip("\r\n")

    def current_revision(self, document: str) -> int:
        return self._revisions[document]

    def on_document_changed(self, document: str, handler: ChangeHandler) -> None:
        with self._lock:
            self._change_handlers.setdefault(document, []).append(handler)

    def on_document_closed(self, document: str, handler: CloseHandler) -> None:
        with self._lock:
            self._close_handlers.setdefault(document, []).append(handler)

    def render_spans(
        self, document: str, server: str, spans: Iterable[HighlightSpan]
    ) -> None:
        spans = tuple(spans)
        with self._lock:
            self.rendered[(document, server)] = spans
        if self._renderer:
            self._renderer(document, server, spans)

    def cursor_position(self, document: str) -> Tuple[int, int]:
        return self._cursors.get(document, (0, 0))
