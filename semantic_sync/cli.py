"""
cli.py - Inspeção de tokens semânticos pela linha de comando

Propósito:
    Inicia um servidor LSP via STDIO, negocia capacidades, abre um arquivo,
    executa um refresh pelo SemanticSync e imprime os spans decodificados.

Exemplo de uso:
    semantic-sync exemplo.py -- pylsp
    semantic-sync exemplo.py --at 3:8 -- pylsp
    semantic-sync exemplo.py --raw -- rust-analyzer

Notas de implementação:
    - Cliente LSP: pygls BaseLanguageClient (asyncio)
    - Timers e callbacks rodam no mesmo event loop (AsyncioScheduler)
    - Logs vão para stderr; stdout fica só com o resultado
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from lsprotocol.types import (
    ClientCapabilities,
    DidOpenTextDocumentParams,
    GeneralClientCapabilities,
    InitializedParams,
    InitializeParams,
    Position,
    PositionEncodingKind,
    TextDocumentItem,
)
from pygls.lsp.client import BaseLanguageClient

from semantic_sync import __version__
from semantic_sync.capabilities import update_client_capabilities
from semantic_sync.decoder import HighlightSpan
from semantic_sync.host import WorkspaceHost
from semantic_sync.hover import compute_hover
from semantic_sync.patch import records
from semantic_sync.scheduler import AsyncioScheduler
from semantic_sync.sync import SemanticSync
from semantic_sync.transport import ClientTransport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semantic-sync",
        description="Exibe os tokens semânticos que um servidor LSP produz para um arquivo.",
        usage="%(prog)s FILE [opções] -- SERVER_CMD [ARGS...]",
    )
    parser.add_argument("file", help="Arquivo a inspecionar")
    parser.add_argument("--at", metavar="LINE:COL", help="Mostra apenas os tokens nesta posição (0-based)")
    parser.add_argument("--raw", action="store_true", help="Imprime o stream relativo em vez dos spans")
    parser.add_argument("--language-id", default="", help="languageId enviado no didOpen")
    parser.add_argument("--timeout", type=float, default=30.0, help="Timeout em segundos por etapa")
    parser.add_argument("--log-level", default="WARNING", help="Nível de log (stderr)")
    return parser


def parse_position(value: str) -> Tuple[int, int]:
    """Converte 'LINE:COL' em (line, col)."""
    try:
        line, col = value.split(":", 1)
        position = (int(line), int(col))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Posição inválida: {value!r} (esperado LINE:COL)")
    if position[0] < 0 or position[1] < 0:
        raise argparse.ArgumentTypeError(f"Posição negativa: {value!r}")
    return position


def format_span(span: HighlightSpan) -> str:
    return f"{span.line}:{span.start}-{span.end}\t{span.highlight_group}\t{span.text!r}"


def split_command(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Separa os argumentos da CLI do comando do servidor (após '--')."""
    if "--" not in argv:
        return list(argv), []
    index = argv.index("--")
    return list(argv[:index]), list(argv[index + 1:])


async def run(args: argparse.Namespace) -> int:
    command = args.command
    path = Path(args.file).resolve()
    uri = path.as_uri()
    text = path.read_text(encoding="utf-8")
    position = parse_position(args.at) if args.at else None

    loop = asyncio.get_running_loop()
    client = BaseLanguageClient("semantic-sync", __version__)
    await client.start_io(command[0], *command[1:])

    try:
        capabilities = update_client_capabilities(
            ClientCapabilities(
                general=GeneralClientCapabilities(
                    position_encodings=[
                        PositionEncodingKind.Utf32,
                        PositionEncodingKind.Utf16,
                        PositionEncodingKind.Utf8,
                    ]
                )
            )
        )
        result = await asyncio.wait_for(
            client.initialize_async(
                InitializeParams(
                    capabilities=capabilities,
                    process_id=os.getpid(),
                    root_uri=path.parent.as_uri(),
                )
            ),
            args.timeout,
        )
        client.initialized(InitializedParams())
        client.text_document_did_open(
            DidOpenTextDocumentParams(
                text_document=TextDocumentItem(
                    uri=uri, language_id=args.language_id, version=0, text=text
                )
            )
        )

        server_name = result.server_info.name if result.server_info else command[0]
        transport = ClientTransport(server_name, client, result.capabilities)
        if transport.semantic_support is None:
            print(f"{server_name} não suporta semanticTokens/full", file=sys.stderr)
            return 2

        host = WorkspaceHost(path.parent.as_uri())
        host.open_document(uri, text, args.language_id)
        sync = SemanticSync(host, scheduler=AsyncioScheduler(loop))
        sync.add_server(transport)

        done = asyncio.Event()
        sync.add_listener(lambda document, server, applied: loop.call_soon_threadsafe(done.set))
        sync.refresh(uri)
        await asyncio.wait_for(done.wait(), args.timeout)

        ctx = sync.context(uri, server_name)
        if args.raw:
            for record in records(ctx.data if ctx else []):
                print(" ".join(str(value) for value in record))
            return 0

        if position is not None:
            hover = compute_hover(sync, uri, Position(line=position[0], character=position[1]))
            if hover is None:
                print("Nenhum token nesta posição", file=sys.stderr)
                return 1
            print(hover.contents.value)
            return 0

        for span in sync.store.get(uri, server_name):
            print(format_span(span))
        return 0
    finally:
        try:
            await asyncio.wait_for(client.shutdown_async(None), args.timeout)
            client.exit(None)
        except Exception as e:
            logger.warning(f"Falha ao encerrar o servidor: {e}")
        await client.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Ponto de entrada da CLI."""
    parser = build_parser()
    own, command = split_command(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(own)
    args.command = command
    if not command:
        parser.error("informe o comando do servidor após '--'")
    if args.at:
        try:
            parse_position(args.at)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return asyncio.run(run(args))
    except asyncio.TimeoutError:
        print("Timeout aguardando o servidor", file=sys.stderr)
        return 3
    except KeyboardInterrupt:
        return 130
