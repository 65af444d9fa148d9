"""
legend.py - Lookup no legend de tokens semânticos

Propósito:
    O servidor anuncia, na negociação de capacidades, duas listas ordenadas:
    tipos de token e modificadores. Os registros do stream referenciam essas
    listas por índice (tipo) e por bitmask (modificadores).

Componentes principais:
    - Legend: Listas imutáveis de tipos e modificadores
    - type_name: typeIndex → nome (None se fora do intervalo)
    - modifier_names: bitmask → nomes dos modificadores ativos
    - highlight_group: nome do grupo de highlight ("@tipo.mod1.mod2")

Notas de implementação:
    - O loop de modificadores para quando mask == 0, não numa largura fixa
    - Bits além da tabela de modificadores são ignorados
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Legend:
    """Legend negociado com um servidor (fixo durante a sessão)."""

    token_types: Tuple[str, ...] = ()
    token_modifiers: Tuple[str, ...] = ()

    @classmethod
    def from_lsp(cls, legend) -> "Legend":
        """
        Cria Legend a partir de lsprotocol SemanticTokensLegend ou dict JSON.

        Aceita tanto o objeto estruturado (token_types/token_modifiers)
        quanto o formato cru do protocolo (tokenTypes/tokenModifiers).
        """
        if legend is None:
            return cls()
        if isinstance(legend, dict):
            types = legend.get("tokenTypes") or legend.get("token_types") or []
            modifiers = legend.get("tokenModifiers") or legend.get("token_modifiers") or []
        else:
            types = getattr(legend, "token_types", None) or []
            modifiers = getattr(legend, "token_modifiers", None) or []
        return cls(tuple(_names(types)), tuple(_names(modifiers)))


def _names(values: Iterable) -> Iterable[str]:
    for value in values:
        yield getattr(value, "value", value)


def type_name(legend: Legend, type_index: int) -> Optional[str]:
    """Nome do tipo para type_index, ou None se fora do legend."""
    if 0 <= type_index < len(legend.token_types):
        return legend.token_types[type_index]
    return None


def modifier_names(legend: Legend, mask: int) -> Tuple[str, ...]:
    """
    Decodifica o bitmask de modificadores em nomes, na ordem dos bits.

    Exemplo:
        modifiers = ("declaration", "readonly", "static")
        mask = 0b101 → ("declaration", "static")
    """
    names = []
    if mask < 0:
        return ()

    bit = 0
    while mask != 0:
        if mask & 1:
            if bit < len(legend.token_modifiers):
                names.append(legend.token_modifiers[bit])
            else:
                logger.debug(f"Bit de modificador {bit} fora do legend")
        mask >>= 1
        bit += 1
    return tuple(names)


def highlight_group(token_type: str, modifiers: Iterable[str] = ()) -> str:
    """Grupo de highlight no formato '@tipo.mod1.mod2'."""
    return ".".join([f"@{token_type}", *modifiers])
