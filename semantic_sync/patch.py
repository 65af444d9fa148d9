"""
patch.py - Aplicação de edits delta (semanticTokens/full/delta)

Propósito:
    Atualiza o stream em cache com os edits incrementais enviados pelo
    servidor, sem refazer a requisição completa.

Componentes principais:
    - Edit: remoção de delete_count registros em start + inserção de data
    - apply_edits: aplica uma lista de edits ao stream (cópia ou in place)

Notas de implementação:
    - start e delete_count contam REGISTROS (5 inteiros), não inteiros
    - O protocolo envia offsets em inteiros; Edit.from_lsp converte e
      rejeita edits desalinhados
    - Edits são aplicados em ordem decrescente de start: um edit em start
      maior nunca desloca os índices de um edit em start menor
    - Lista de edits vazia devolve o stream inalterado
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from semantic_sync.decoder import RECORD_SIZE
from semantic_sync.errors import PatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edit:
    """Edit em unidades de registro."""

    start: int
    delete_count: int = 0
    data: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_lsp(cls, edit) -> "Edit":
        """
        Converte SemanticTokensEdit (offsets em inteiros) para Edit.

        Aceita o objeto lsprotocol (start/delete_count/data) ou o dict
        JSON (start/deleteCount/data).
        """
        if isinstance(edit, dict):
            start = edit.get("start", 0)
            delete_count = edit.get("deleteCount", edit.get("delete_count", 0))
            data = edit.get("data") or ()
        else:
            start = edit.start
            delete_count = edit.delete_count
            data = edit.data or ()

        if start % RECORD_SIZE or delete_count % RECORD_SIZE or len(data) % RECORD_SIZE:
            raise PatchError(
                f"Edit desalinhado: start={start}, deleteCount={delete_count}, "
                f"len(data)={len(data)}"
            )
        return cls(start // RECORD_SIZE, delete_count // RECORD_SIZE, tuple(data))


def apply_edits(
    stream: List[int], edits: Iterable[Edit], *, in_place: bool = False
) -> List[int]:
    """
    Aplica edits ao stream em ordem decrescente de start.

    Args:
        stream: Stream em cache (múltiplo de 5)
        edits: Edits em qualquer ordem
        in_place: Se True, muta `stream`; senão trabalha numa cópia

    Returns:
        Stream resultante (o próprio `stream` quando in_place=True)

    Raises:
        PatchError: edit com índices negativos, fora do stream ou com
            data que não é múltiplo de 5
    """
    if len(stream) % RECORD_SIZE:
        raise PatchError(f"Stream em cache com {len(stream)} inteiros")

    result = stream if in_place else list(stream)

    # sorted é estável: edits com o mesmo start mantêm a ordem recebida
    for edit in sorted(edits, key=lambda e: e.start, reverse=True):
        _apply_one(result, edit)

    return result


def _apply_one(data: List[int], edit: Edit) -> None:
    records = len(data) // RECORD_SIZE

    if edit.start < 0 or edit.delete_count < 0:
        raise PatchError(f"Edit com índice negativo: {edit}")
    if edit.start + edit.delete_count > records:
        raise PatchError(
            f"Edit além do fim do stream: start={edit.start}, "
            f"delete_count={edit.delete_count}, registros={records}"
        )
    if len(edit.data) % RECORD_SIZE:
        raise PatchError(f"Edit com data de {len(edit.data)} inteiros")

    begin = edit.start * RECORD_SIZE
    end = begin + edit.delete_count * RECORD_SIZE
    data[begin:end] = edit.data


def records(data: Sequence[int]) -> List[Tuple[int, ...]]:
    """Agrupa o stream em tuplas de 5 inteiros."""
    return [
        tuple(data[i:i + RECORD_SIZE])
        for i in range(0, len(data) - len(data) % RECORD_SIZE, RECORD_SIZE)
    ]
