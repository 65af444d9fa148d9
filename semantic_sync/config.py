"""
config.py - Configuração do motor de sincronização

Propósito:
    Lê as opções do usuário a partir do payload de
    workspace/didChangeConfiguration (ou equivalente do host).

Formato aceito:
    {"semanticTokens": {"enabled": true, "debounce": 200}}
    ou a própria seção: {"enabled": true, "debounce": 200}

Notas de implementação:
    - Entradas malformadas caem nos valores padrão (nunca levanta exceção)
    - debounce em milissegundos; 200ms é o intervalo padrão
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "semanticTokens"
DEFAULT_DEBOUNCE_MS = 200


@dataclass(frozen=True)
class SyncSettings:
    """Opções do SemanticSync."""

    enabled: bool = True
    debounce_ms: int = DEFAULT_DEBOUNCE_MS

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_settings(cls, settings) -> "SyncSettings":
        """
        Constrói SyncSettings a partir do payload de configuração.

        settings pode vir como {'semanticTokens': {...}} ou já ser a seção.
        """
        if not isinstance(settings, dict):
            return cls()

        section = settings.get(SETTINGS_SECTION, settings)
        if not isinstance(section, dict):
            return cls()

        enabled = section.get("enabled", True)
        if not isinstance(enabled, bool):
            logger.warning(f"{SETTINGS_SECTION}.enabled inválido: {enabled!r}")
            enabled = True

        debounce = section.get("debounce", DEFAULT_DEBOUNCE_MS)
        if isinstance(debounce, bool) or not isinstance(debounce, int) or debounce < 0:
            logger.warning(f"{SETTINGS_SECTION}.debounce inválido: {debounce!r}")
            debounce = DEFAULT_DEBOUNCE_MS

        return cls(enabled=enabled, debounce_ms=debounce)
