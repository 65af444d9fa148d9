"""
errors.py - Exceções do motor de sincronização de tokens semânticos

Notas de implementação:
    - Erros de dados (registro malformado) não geram exceção: o registro é pulado
    - Erros de transporte chegam como exceção no callback e nunca sobem ao host
    - PatchError sinaliza violação de invariante ao aplicar edits delta e
      aborta apenas o refresh corrente
"""


class SemanticSyncError(Exception):
    """Base para erros do semantic_sync."""


class PatchError(SemanticSyncError, ValueError):
    """Edit delta inconsistente com o stream em cache."""
