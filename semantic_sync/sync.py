"""
sync.py - Máquina de estados de sincronização de tokens semânticos

Propósito:
    Mantém os highlights de cada (documento, servidor) sincronizados com o
    servidor: agenda refresh com debounce a cada mudança, garante no máximo
    uma requisição em voo, escolhe entre full e delta e reconstrói os spans
    a partir do stream em cache.

Componentes principais:
    - SyncState: IDLE, DEBOUNCED_PENDING, REQUEST_IN_FLIGHT
    - SyncContext: Estado de um par (documento, servidor)
    - SemanticSync: Coordenador (servidores, contextos, store, host)

Fluxo:
    1. Host notifica mudança → timer de debounce marcado com a revisão atual
    2. Novas mudanças substituem o timer (nunca acumulam)
    3. Timer dispara → descarta se a revisão mudou ou se há requisição em voo
    4. Requisição full (ou full/delta com previousResultId)
    5. Resposta → patch (delta) → decode do stream INTEIRO → store → render
    6. Ao concluir, se o documento andou, agenda novo refresh

Notas de implementação:
    - Toda mutação de um contexto acontece sob o RLock do próprio contexto;
      contextos diferentes não compartilham lock
    - Erro de transporte mantém stream e spans anteriores (dado velho é
      preferível a dado corrompido) e força requisição full na próxima vez
    - Resposta velha (documento mudou durante a requisição) atualiza o
      stream em cache mas não é renderizada
    - Nenhuma exceção escapa para o loop de callbacks do host
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from semantic_sync.config import SyncSettings
from semantic_sync.decoder import HighlightSpan, decode
from semantic_sync.errors import PatchError
from semantic_sync.host import ChangeEvent, TextHost
from semantic_sync.legend import Legend
from semantic_sync.patch import apply_edits
from semantic_sync.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from semantic_sync.store import HighlightStore
from semantic_sync.transport import (
    METHOD_FULL,
    METHOD_FULL_DELTA,
    TokenResponse,
    TokenServer,
)

logger = logging.getLogger(__name__)

# Listener: (document, server_name, applied)
Listener = Callable[[str, str, bool], None]


class SyncState(Enum):
    IDLE = "idle"
    DEBOUNCED_PENDING = "debounced_pending"
    REQUEST_IN_FLIGHT = "request_in_flight"


@dataclass(eq=False)
class SyncContext:
    """
    Estado de sincronização de um par (documento, servidor).

    Attributes:
        data: Stream em cache (válido para `revision`)
        result_id: Último resultId do servidor (base para delta)
        revision: Revisão do documento para a qual `data` foi calculado
        requested_revision: Revisão da requisição em voo
        follow_up: Refresh manual pedido durante requisição em voo
    """

    document: str
    server: TokenServer
    legend: Legend
    supports_delta: bool
    encoding: str
    data: List[int] = field(default_factory=list)
    result_id: Optional[str] = None
    revision: Optional[int] = None
    in_flight: bool = False
    requested_revision: Optional[int] = None
    timer: Optional[TimerHandle] = None
    timer_token: Optional[object] = None
    follow_up: bool = False
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def server_name(self) -> str:
        return self.server.name

    @property
    def state(self) -> SyncState:
        if self.in_flight:
            return SyncState.REQUEST_IN_FLIGHT
        if self.timer is not None:
            return SyncState.DEBOUNCED_PENDING
        return SyncState.IDLE


class SemanticSync:
    """
    Coordena a sincronização de tokens semânticos entre host e servidores.

    Attributes:
        host: Superfície de edição (texto, revisões, renderização)
        store: Spans atuais por (documento, servidor)
        scheduler: Fonte dos timers de debounce
        settings: SyncSettings em vigor
    """

    def __init__(
        self,
        host: TextHost,
        store: Optional[HighlightStore] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self.host = host
        self.store = store or HighlightStore()
        self.scheduler = scheduler or ThreadingScheduler()
        self.settings = settings or SyncSettings()
        self._servers: Dict[str, TokenServer] = {}
        self._contexts: Dict[Tuple[str, str], SyncContext] = {}
        self._attached: set[str] = set()
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    # --- Servidores e contextos ---

    def add_server(self, server: TokenServer) -> None:
        """Registra um servidor; a ordem de registro define a ordem das consultas."""
        with self._lock:
            self._servers[server.name] = server
        if server.semantic_support is None:
            logger.info(f"Servidor {server.name} sem suporte a tokens semânticos")
        else:
            logger.info(f"Servidor registrado: {server.name}")

    def remove_server(self, name: str) -> None:
        """Remove o servidor e descarta seus contextos e highlights."""
        with self._lock:
            self._servers.pop(name, None)
            removed = [k for k in self._contexts if k[1] == name]
            contexts = [self._contexts.pop(k) for k in removed]

        for ctx in contexts:
            self._teardown(ctx)
            self.store.discard(ctx.document, name)
            self.host.render_spans(ctx.document, name, ())

    def context(self, document: str, server_name: str) -> Optional[SyncContext]:
        with self._lock:
            return self._contexts.get((document, server_name))

    def get_or_create_context(
        self, document: str, server: TokenServer
    ) -> Optional[SyncContext]:
        """
        Retorna o contexto de (document, server), criando-o se necessário.

        Servidor sem suporte a tokens semânticos nunca ganha contexto.
        """
        support = server.semantic_support
        if support is None:
            return None

        key = (document, server.name)
        with self._lock:
            ctx = self._contexts.get(key)
            if ctx is not None:
                return ctx
            ctx = SyncContext(
                document=document,
                server=server,
                legend=support.legend,
                supports_delta=support.delta,
                encoding=server.position_encoding,
            )
            self._contexts[key] = ctx

        # Reserva a posição do servidor na ordem de consulta do documento
        if server.name not in self.store.servers(document):
            self.store.replace(document, server.name, ())
        logger.debug(f"Contexto criado: {document} [{server.name}]")
        return ctx

    def contexts(self, document: str) -> List[SyncContext]:
        """Contextos do documento na ordem de registro dos servidores."""
        with self._lock:
            return [
                self._contexts[(document, name)]
                for name in self._servers
                if (document, name) in self._contexts
            ]

    def attach(self, document: str) -> List[SyncContext]:
        """
        Cria contextos para todos os servidores capazes e assina as
        notificações do host (uma única vez por documento).
        """
        with self._lock:
            servers = list(self._servers.values())
            subscribe = document not in self._attached
            self._attached.add(document)

        if subscribe:
            self.host.on_document_changed(document, self.notify_changed)
            self.host.on_document_closed(document, self.close)

        contexts = []
        for server in servers:
            ctx = self.get_or_create_context(document, server)
            if ctx is not None:
                contexts.append(ctx)
        return contexts

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # --- Entradas do host ---

    def notify_changed(self, event: ChangeEvent) -> None:
        """Handler de mudança: (re)agenda o refresh com debounce."""
        if not self.settings.enabled:
            return
        for ctx in self.contexts(event.document):
            try:
                with ctx.lock:
                    if ctx.closed:
                        continue
                    if event.removed_lines:
                        spans = self.store.clear_lines(
                            ctx.document,
                            ctx.server_name,
                            event.first_line,
                            event.last_line,
                            event.new_last_line,
                        )
                        self.host.render_spans(ctx.document, ctx.server_name, spans)
                    self._schedule(ctx, event.revision)
            except Exception as e:
                logger.error(f"Erro ao processar mudança em {event.document}: {e}", exc_info=True)

    def refresh(self, document: str) -> None:
        """
        Refresh manual: requisita imediatamente para cada contexto ocioso.

        Contextos com requisição em voo recebem um follow-up, emitido
        quando a requisição atual terminar.
        """
        if not self.settings.enabled:
            return
        for ctx in self.attach(document):
            with ctx.lock:
                if ctx.closed:
                    continue
                if ctx.in_flight:
                    ctx.follow_up = True
                    continue
                self._cancel_timer(ctx)
                try:
                    revision = self.host.current_revision(document)
                except Exception as e:
                    logger.warning(f"Revisão indisponível para {document}: {e}")
                    continue
                method, params = self._begin_request(ctx, revision)
            self._send(ctx, method, params)

    def close(self, document: str) -> None:
        """Descarta contextos e highlights do documento, em qualquer estado."""
        with self._lock:
            keys = [k for k in self._contexts if k[0] == document]
            contexts = [self._contexts.pop(k) for k in keys]
            self._attached.discard(document)

        for ctx in contexts:
            self._teardown(ctx)
        self.store.discard(document)
        logger.info(f"Sincronização encerrada: {document}")

    def configure(self, settings) -> None:
        """
        Aplica novas configurações (SyncSettings ou payload de configuração).

        Desativar limpa todos os highlights; reativar faz refresh dos
        documentos anexados.
        """
        old = self.settings
        if not isinstance(settings, SyncSettings):
            settings = SyncSettings.from_settings(settings)
        self.settings = settings
        logger.info(
            f"Configuração atualizada: enabled = {settings.enabled}, "
            f"debounce = {settings.debounce_ms}ms"
        )

        if old.enabled and not settings.enabled:
            with self._lock:
                contexts = list(self._contexts.values())
            for ctx in contexts:
                with ctx.lock:
                    self._cancel_timer(ctx)
            for document in self.store.documents():
                for server in self.store.servers(document):
                    self.host.render_spans(document, server, ())
                self.store.discard(document)
        elif not old.enabled and settings.enabled:
            with self._lock:
                documents = list(self._attached)
            for document in documents:
                try:
                    self.refresh(document)
                except Exception as e:
                    logger.error(f"Erro ao atualizar {document}: {e}", exc_info=True)

    def query_at(
        self, document: str, line: int, col: int
    ) -> List[Tuple[str, HighlightSpan]]:
        """Spans que cobrem (line, col), um por servidor, na ordem de registro."""
        with self._lock:
            order = list(self._servers)
        return self.store.query_at(document, line, col, order)

    def show(self, document: str) -> List[Tuple[str, HighlightSpan]]:
        """Spans sob o cursor do host, um por servidor."""
        line, col = self.host.cursor_position(document)
        return self.query_at(document, line, col)

    # --- Timers ---

    def _schedule(self, ctx: SyncContext, revision: int) -> None:
        """Substitui o timer do contexto por um marcado com `revision` (lock retido)."""
        self._cancel_timer(ctx)
        token = object()
        ctx.timer_token = token
        ctx.timer = self.scheduler.call_later(
            self.settings.debounce_seconds,
            lambda: self._on_timer(ctx, revision, token),
        )

    def _cancel_timer(self, ctx: SyncContext) -> None:
        if ctx.timer is not None:
            ctx.timer.cancel()
        ctx.timer = None
        ctx.timer_token = None

    def _on_timer(self, ctx: SyncContext, revision: int, token: object) -> None:
        try:
            with ctx.lock:
                if ctx.closed or token is not ctx.timer_token:
                    return
                ctx.timer = None
                ctx.timer_token = None
                if not self.settings.enabled:
                    return

                current = self.host.current_revision(ctx.document)
                if current != revision:
                    logger.debug(f"Timer descartado: {ctx.document} revisão {revision} -> {current}")
                    return
                if ctx.in_flight:
                    logger.debug(f"Timer descartado: requisição em voo para {ctx.document}")
                    return
                method, params = self._begin_request(ctx, revision)
            self._send(ctx, method, params)
        except Exception as e:
            logger.error(f"Erro no refresh de {ctx.document}: {e}", exc_info=True)

    # --- Requisições ---

    def _begin_request(self, ctx: SyncContext, revision: int) -> Tuple[str, dict]:
        """Monta a requisição e marca o contexto como em voo (lock retido)."""
        params = {"document": ctx.document}
        if ctx.supports_delta and ctx.result_id:
            method = METHOD_FULL_DELTA
            params["previousResultId"] = ctx.result_id
        else:
            method = METHOD_FULL

        ctx.in_flight = True
        ctx.requested_revision = revision
        ctx.follow_up = False
        return method, params

    def _send(self, ctx: SyncContext, method: str, params: dict) -> None:
        logger.debug(f"{method} -> {ctx.server_name} ({ctx.document})")
        try:
            ctx.server.request(
                method,
                params,
                lambda error, response: self._on_response(ctx, error, response),
            )
        except Exception as e:
            self._on_response(ctx, e, None)

    def _on_response(
        self,
        ctx: SyncContext,
        error: Optional[BaseException],
        response: Optional[TokenResponse],
    ) -> None:
        applied = False
        try:
            with ctx.lock:
                if ctx.closed:
                    return
                ctx.in_flight = False
                requested = ctx.requested_revision

                if error is not None:
                    if isinstance(error, PatchError):
                        logger.error(f"Delta inválido de {ctx.server_name} para {ctx.document}: {error}")
                    else:
                        logger.warning(f"Requisição de tokens falhou ({ctx.server_name}, {ctx.document}): {error}")
                    ctx.result_id = None
                elif response is None or response.is_empty:
                    logger.debug(f"Resposta vazia de {ctx.server_name} para {ctx.document}")
                else:
                    applied = self._apply_response(ctx, response, requested)

                self._reconcile(ctx, requested)
        except Exception as e:
            logger.error(f"Erro ao processar resposta para {ctx.document}: {e}", exc_info=True)

        for listener in list(self._listeners):
            try:
                listener(ctx.document, ctx.server_name, applied)
            except Exception as e:
                logger.warning(f"Listener falhou: {e}", exc_info=True)

    def _apply_response(
        self, ctx: SyncContext, response: TokenResponse, requested: Optional[int]
    ) -> bool:
        """Atualiza o stream em cache e, se a resposta não é velha, os highlights."""
        try:
            if response.edits is not None:
                # Lista vazia também re-decodifica
                data = apply_edits(ctx.data, response.edits)
            else:
                data = list(response.data)

            spans = None
            current = self.host.current_revision(ctx.document)
            if self.settings.enabled and current == requested:
                spans = decode(
                    data,
                    ctx.legend,
                    ctx.document,
                    self.host.get_line_text,
                    ctx.encoding,
                    ctx.server_name,
                )
        except Exception as e:
            logger.error(
                f"Refresh abortado para {ctx.document} [{ctx.server_name}]: {e}",
                exc_info=True,
            )
            ctx.result_id = None
            return False

        ctx.data = data
        ctx.result_id = response.result_id
        ctx.revision = requested

        if spans is None:
            logger.debug(f"Resposta velha para {ctx.document} (revisão {requested}); não renderizada")
            return False

        group = self.store.replace(ctx.document, ctx.server_name, spans)
        self.host.render_spans(ctx.document, ctx.server_name, group)
        return True

    def _reconcile(self, ctx: SyncContext, requested: Optional[int]) -> None:
        """Agenda novo refresh se o documento andou durante a requisição (lock retido)."""
        if not self.settings.enabled or ctx.timer is not None:
            return
        try:
            current = self.host.current_revision(ctx.document)
        except Exception:
            return
        if ctx.follow_up or current != requested:
            ctx.follow_up = False
            self._schedule(ctx, current)

    def _teardown(self, ctx: SyncContext) -> None:
        with ctx.lock:
            ctx.closed = True
            self._cancel_timer(ctx)
