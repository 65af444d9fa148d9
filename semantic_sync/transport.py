"""
transport.py - Requisições de tokens semânticos ao servidor

Propósito:
    Define a interface de transporte consumida pelo SemanticSync e um
    adaptador sobre o cliente LSP do pygls.

Componentes principais:
    - TokenResponse: Resposta normalizada (result_id + data OU edits)
    - TokenServer: Protocolo de um servidor (nome, encoding, suporte, request)
    - ClientTransport: Adaptador sobre pygls BaseLanguageClient

Notas de implementação:
    - Callbacks recebem (erro, resposta); exatamente um deles é None
    - Resposta nula do servidor vira TokenResponse vazio (sem data/edits)
    - Edits do protocolo (offsets em inteiros) são convertidos para
      unidades de registro; edit desalinhado vira PatchError no callback
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from lsprotocol.types import (
    TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL,
    TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL_DELTA,
    SemanticTokensDeltaParams,
    SemanticTokensParams,
    TextDocumentIdentifier,
)

from semantic_sync.capabilities import SemanticSupport
from semantic_sync.encoding import normalize_encoding
from semantic_sync.patch import Edit

logger = logging.getLogger(__name__)

METHOD_FULL = TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL
METHOD_FULL_DELTA = TEXT_DOCUMENT_SEMANTIC_TOKENS_FULL_DELTA


@dataclass
class TokenResponse:
    """Resposta de semanticTokens/full ou semanticTokens/full/delta."""

    result_id: Optional[str] = None
    data: Optional[List[int]] = None
    edits: Optional[List[Edit]] = None

    @property
    def is_empty(self) -> bool:
        return self.data is None and self.edits is None

    @classmethod
    def from_lsp(cls, result) -> "TokenResponse":
        """
        Normaliza SemanticTokens / SemanticTokensDelta / dict JSON / None.

        Raises:
            PatchError: edit do protocolo desalinhado com os registros
        """
        if result is None:
            return cls()

        if isinstance(result, dict):
            result_id = result.get("resultId")
            data = result.get("data")
            edits = result.get("edits")
        else:
            result_id = getattr(result, "result_id", None)
            data = getattr(result, "data", None)
            edits = getattr(result, "edits", None)

        if edits is not None:
            return cls(result_id=result_id, edits=[Edit.from_lsp(e) for e in edits])
        if data is not None:
            return cls(result_id=result_id, data=list(data))
        return cls(result_id=result_id)


ResponseCallback = Callable[[Optional[BaseException], Optional[TokenResponse]], None]


class TokenServer(Protocol):
    name: str
    position_encoding: str
    semantic_support: Optional[SemanticSupport]

    def request(self, method: str, params: dict, callback: ResponseCallback) -> None: ...


def build_params(method: str, params: dict):
    """Converte params {'document', 'previousResultId'} para tipos lsprotocol."""
    text_document = TextDocumentIdentifier(uri=params["document"])
    if method == METHOD_FULL_DELTA:
        return SemanticTokensDeltaParams(
            text_document=text_document,
            previous_result_id=params["previousResultId"],
        )
    return SemanticTokensParams(text_document=text_document)


class ClientTransport:
    """
    TokenServer sobre um pygls BaseLanguageClient já inicializado.

    Attributes:
        name: Nome do servidor (chave dos grupos de highlight)
        position_encoding: Encoding negociado (utf-16 se o servidor não informou)
        semantic_support: Legend e suporte a delta anunciados pelo servidor
    """

    def __init__(self, name: str, client, server_capabilities):
        self.name = name
        self.client = client
        if isinstance(server_capabilities, dict):
            encoding = server_capabilities.get("positionEncoding")
        else:
            encoding = getattr(server_capabilities, "position_encoding", None)
        self.position_encoding = normalize_encoding(encoding)
        self.semantic_support = SemanticSupport.from_capabilities(server_capabilities)

    def request(self, method: str, params: dict, callback: ResponseCallback) -> None:
        future = self.client.protocol.send_request(method, build_params(method, params))

        def _done(fut):
            error = fut.exception() if not fut.cancelled() else TimeoutError("cancelada")
            if error is not None:
                callback(error, None)
                return
            try:
                response = TokenResponse.from_lsp(fut.result())
            except Exception as e:
                callback(e, None)
                return
            callback(None, response)

        future.add_done_callback(_done)
