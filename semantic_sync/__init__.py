"""
semantic_sync - Sincronização de tokens semânticos LSP com os highlights do editor

Propósito:
    Mantém os highlights semânticos de um editor alinhados com a análise de
    um servidor LSP, através de edits no documento e de atualizações
    incrementais (delta) do servidor, sem re-requisitar nem re-renderizar o
    documento inteiro a cada tecla.

Componentes principais:
    - encoding: Conversão de colunas (utf-8/utf-16/utf-32 → code points)
    - legend: Lookup de tipos e modificadores
    - decoder: Stream relativo → HighlightSpan
    - patch: Aplicação de edits delta
    - sync: Máquina de estados por (documento, servidor)
    - store: Spans atuais e consultas por posição

Dependências críticas:
    - lsprotocol: Tipos do protocolo LSP
    - pygls: Cliente LSP e modelo de texto (workspace)

Exemplo de uso:
    python -m semantic_sync arquivo.py -- pylsp

Notas de implementação:
    - Debounce de 200ms por padrão
    - No máximo uma requisição em voo por (documento, servidor)
    - __version__ vem dos metadados da distribuição semantic-sync (a CLI o
      informa ao criar o cliente pygls); num checkout sem instalação
      é lido do pyproject.toml
"""
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import re


def _read_version_from_pyproject() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    try:
        text = pyproject.read_text(encoding="utf-8")
    except OSError:
        return "0.0.0"
    match = re.search(r'(?m)^version = "([^"]+)"\s*$', text)
    return match.group(1) if match else "0.0.0"


try:
    __version__ = _pkg_version("semantic-sync")
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__all__ = ["sync", "decoder", "patch", "store", "encoding", "legend"]
