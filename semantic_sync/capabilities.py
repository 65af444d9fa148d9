"""
capabilities.py - Negociação de capacidades de tokens semânticos

Propósito:
    Declara ao servidor o que o cliente suporta (oferta local) e interpreta
    o que o servidor anuncia (semanticTokensProvider).

Componentes principais:
    - TOKEN_TYPES / TOKEN_MODIFIERS: Nomes reconhecidos pelo cliente
    - client_capabilities_dict: Oferta local no formato JSON do protocolo
    - build_client_capabilities: Oferta como SemanticTokensClientCapabilities
    - update_client_capabilities: Instala a oferta em ClientCapabilities
    - SemanticSupport: Anúncio do servidor (legend, full, delta)

Oferta local:
    - Apenas requisições "full" e "full/delta" (sem "range")
    - Formato relativo, sem tokens multilinha, sem sobreposição,
      sem cancelamento pelo servidor

Notas de implementação:
    - A oferta é estruturada via conversor do lsprotocol a partir do JSON,
      o que mantém o código independente dos nomes gerados das classes
      aninhadas de requests
    - Servidor sem suporte a "full" não gera SemanticSupport (None)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from lsprotocol.converters import get_converter
from lsprotocol.types import (
    ClientCapabilities,
    SemanticTokenModifiers,
    SemanticTokenTypes,
    SemanticTokensClientCapabilities,
    TextDocumentClientCapabilities,
    TokenFormat,
)

from semantic_sync.legend import Legend

logger = logging.getLogger(__name__)

TOKEN_TYPES: List[str] = [
    SemanticTokenTypes.Namespace.value,
    SemanticTokenTypes.Type.value,
    SemanticTokenTypes.Class.value,
    SemanticTokenTypes.Enum.value,
    SemanticTokenTypes.Interface.value,
    SemanticTokenTypes.Struct.value,
    SemanticTokenTypes.TypeParameter.value,
    SemanticTokenTypes.Parameter.value,
    SemanticTokenTypes.Variable.value,
    SemanticTokenTypes.Property.value,
    SemanticTokenTypes.EnumMember.value,
    SemanticTokenTypes.Event.value,
    SemanticTokenTypes.Function.value,
    SemanticTokenTypes.Method.value,
    SemanticTokenTypes.Macro.value,
    SemanticTokenTypes.Keyword.value,
    SemanticTokenTypes.Modifier.value,
    SemanticTokenTypes.Comment.value,
    SemanticTokenTypes.String.value,
    SemanticTokenTypes.Number.value,
    SemanticTokenTypes.Regexp.value,
    SemanticTokenTypes.Operator.value,
    SemanticTokenTypes.Decorator.value,
]

TOKEN_MODIFIERS: List[str] = [
    SemanticTokenModifiers.Declaration.value,
    SemanticTokenModifiers.Definition.value,
    SemanticTokenModifiers.Readonly.value,
    SemanticTokenModifiers.Static.value,
    SemanticTokenModifiers.Deprecated.value,
    SemanticTokenModifiers.Abstract.value,
    SemanticTokenModifiers.Async.value,
    SemanticTokenModifiers.Modification.value,
    SemanticTokenModifiers.Documentation.value,
    SemanticTokenModifiers.DefaultLibrary.value,
]


def client_capabilities_dict() -> dict:
    """Oferta local de tokens semânticos no formato JSON do protocolo."""
    return {
        "dynamicRegistration": False,
        "requests": {
            "range": False,
            "full": {"delta": True},
        },
        "tokenTypes": list(TOKEN_TYPES),
        "tokenModifiers": list(TOKEN_MODIFIERS),
        "formats": [TokenFormat.Relative.value],
        "overlappingTokenSupport": False,
        "multilineTokenSupport": False,
        "serverCancelSupport": False,
        "augmentsSyntaxTokens": False,
    }


def build_client_capabilities() -> SemanticTokensClientCapabilities:
    """Cria uma instância fresca da oferta para evitar mutações acidentais."""
    return get_converter().structure(
        client_capabilities_dict(), SemanticTokensClientCapabilities
    )


def update_client_capabilities(
    capabilities: Optional[ClientCapabilities] = None,
) -> ClientCapabilities:
    """Instala a oferta de tokens semânticos em ClientCapabilities."""
    if capabilities is None:
        capabilities = ClientCapabilities()
    if capabilities.text_document is None:
        capabilities.text_document = TextDocumentClientCapabilities()
    capabilities.text_document.semantic_tokens = build_client_capabilities()
    return capabilities


def _field(obj, json_name: str, attr_name: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(json_name)
    return getattr(obj, attr_name, None)


@dataclass(frozen=True)
class SemanticSupport:
    """Suporte a tokens semânticos anunciado pelo servidor."""

    legend: Legend
    delta: bool = False

    @classmethod
    def from_capabilities(cls, capabilities) -> Optional["SemanticSupport"]:
        """
        Interpreta ServerCapabilities (objeto lsprotocol ou dict JSON).

        Returns:
            SemanticSupport, ou None se o servidor não suporta requisições
            "full" (o cliente não usa "range")
        """
        provider = _field(capabilities, "semanticTokensProvider", "semantic_tokens_provider")
        if provider is None or provider is False:
            return None

        full = _field(provider, "full", "full")
        if full is None or full is False:
            logger.info("Servidor sem semanticTokens/full; tokens semânticos desativados")
            return None

        delta = False if full is True else bool(_field(full, "delta", "delta"))
        legend = Legend.from_lsp(_field(provider, "legend", "legend"))
        return cls(legend=legend, delta=delta)
