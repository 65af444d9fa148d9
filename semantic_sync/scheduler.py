"""
scheduler.py - Timers canceláveis para o debounce

Propósito:
    O motor de sincronização agenda um timer por contexto e o substitui a
    cada nova mudança. Este módulo fornece os agendadores concretos.

Componentes principais:
    - Scheduler / TimerHandle: Interfaces usadas por SemanticSync
    - ThreadingScheduler: threading.Timer (padrão, hosts baseados em callbacks)
    - AsyncioScheduler: loop.call_later, armado de forma thread-safe
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Agenda callbacks em threads daemon via threading.Timer."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class _LoopTimerHandle:
    """Handle que pode ser cancelado antes mesmo de o loop armar o timer."""

    def __init__(self):
        self.cancelled = False
        self.inner: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.inner is not None:
            self.inner.cancel()


class AsyncioScheduler:
    """
    Agenda callbacks no event loop informado.

    Pode ser chamado de qualquer thread: o timer é armado dentro do loop
    via call_soon_threadsafe.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _LoopTimerHandle()

        def _arm():
            if not handle.cancelled:
                handle.inner = self._loop.call_later(delay, callback)

        self._loop.call_soon_threadsafe(_arm)
        return handle
