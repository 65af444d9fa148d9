"""
test_decoder.py - Testes para decodificação do stream de tokens

Propósito:
    Validar o fold relativo → absoluto, a resolução de nomes, a conversão
    de encoding e a tolerância a registros malformados.
"""

from __future__ import annotations

from semantic_sync.decoder import HighlightSpan, decode, encode
from semantic_sync.legend import Legend

LEGEND = Legend(token_types=("keyword", "variable"), token_modifiers=("readonly",))


def _provider(lines):
    """LineProvider sobre uma lista de linhas."""

    def get_line(document, line):
        return lines[line]

    return get_line


def test_spec_example():
    """Exemplo canônico: keyword em 0-3 e variable readonly em 4-5."""
    provider = _provider(["let x = 1"])
    spans = decode([0, 0, 3, 0, 0, 0, 4, 1, 1, 1], LEGEND, "doc", provider, "utf-16")

    assert [(s.line, s.start, s.end, s.token_type, s.modifiers) for s in spans] == [
        (0, 0, 3, "keyword", ()),
        (0, 4, 5, "variable", ("readonly",)),
    ]
    assert spans[0].text == "let"
    assert spans[1].text == "x"


def test_empty_stream():
    assert decode([], LEGEND, "doc", _provider([]), "utf-16") == []


def test_delta_line_resets_column():
    """deltaStartChar é absoluto quando deltaLine > 0."""
    provider = _provider(["    abc", "  def", "ghi jkl"])
    data = [
        0, 4, 3, 0, 0,
        1, 2, 3, 1, 0,
        1, 0, 3, 0, 0,
        0, 4, 3, 1, 0,
    ]
    spans = decode(data, LEGEND, "doc", provider, "utf-16")
    assert [(s.line, s.start, s.end) for s in spans] == [
        (0, 4, 7),
        (1, 2, 5),
        (2, 0, 3),
        (2, 4, 7),
    ]
    assert [s.text for s in spans] == ["abc", "def", "ghi", "jkl"]


def test_spans_carry_metadata():
    spans = decode([0, 0, 3, 0, 1], LEGEND, "file:///a.py", _provider(["let"]), "utf-16", server="pylsp")
    assert spans == [
        HighlightSpan(
            line=0, start=0, end=3, token_type="keyword",
            modifiers=("readonly",), server="pylsp", text="let",
        )
    ]
    assert spans[0].highlight_group == "@keyword.readonly"


def test_utf16_conversion():
    """Colunas utf-16 após emoji são convertidas para code points."""
    provider = _provider(["😀 = foo"])
    # 'foo' começa na coluna utf-16 5 (emoji=2, ' = '=3)
    spans = decode([0, 5, 3, 1, 0], LEGEND, "doc", provider, "utf-16")
    assert (spans[0].start, spans[0].end) == (4, 7)
    assert spans[0].text == "foo"


def test_cursor_stays_in_server_units():
    """A conversão não volta para o cursor: o segundo token usa a coluna utf-16."""
    provider = _provider(["😀a b"])
    # token 1: 'a' em utf-16 col 2; token 2: 'b' em utf-16 col 4 (delta 2)
    spans = decode([0, 2, 1, 0, 0, 0, 2, 1, 1, 0], LEGEND, "doc", provider, "utf-16")
    assert [(s.start, s.end, s.text) for s in spans] == [(1, 2, "a"), (3, 4, "b")]


def test_unknown_type_is_skipped_but_cursor_advances():
    provider = _provider(["aa bb cc"])
    data = [
        0, 0, 2, 0, 0,
        0, 3, 2, 9, 0,  # tipo inexistente
        0, 3, 2, 1, 0,
    ]
    spans = decode(data, LEGEND, "doc", provider, "utf-16")
    assert [(s.start, s.text) for s in spans] == [(0, "aa"), (6, "cc")]


def test_line_out_of_range_is_skipped():
    """Linha inexistente (texto velho) pula só aquele registro."""
    provider = _provider(["abc"])
    data = [
        0, 0, 1, 0, 0,
        5, 0, 1, 0, 0,
    ]
    spans = decode(data, LEGEND, "doc", provider, "utf-16")
    assert len(spans) == 1


def test_column_past_line_end_is_skipped():
    provider = _provider(["ab", "abcdef"])
    data = [
        0, 1, 5, 0, 0,  # 1..6 em "ab": inválido
        1, 1, 2, 1, 0,
    ]
    spans = decode(data, LEGEND, "doc", provider, "utf-16")
    assert [(s.line, s.start, s.end) for s in spans] == [(1, 1, 3)]


def test_column_past_line_end_native_encoding():
    spans = decode([0, 1, 5, 0, 0], LEGEND, "doc", _provider(["ab"]), "utf-32")
    assert spans == []


def test_zero_length_is_skipped():
    spans = decode([0, 0, 0, 0, 0], LEGEND, "doc", _provider(["abc"]), "utf-16")
    assert spans == []


def test_trailing_fragment_is_dropped():
    """Stream com tamanho não múltiplo de 5 decodifica os registros completos."""
    spans = decode([0, 0, 3, 0, 0, 0, 4], LEGEND, "doc", _provider(["let x"]), "utf-16")
    assert len(spans) == 1


def test_provider_failure_does_not_abort():
    calls = []

    def flaky(document, line):
        calls.append(line)
        if line == 1:
            raise RuntimeError("linha indisponível")
        return "abcdef"

    data = [0, 0, 1, 0, 0, 1, 0, 1, 0, 0, 1, 0, 1, 0, 0]
    spans = decode(data, LEGEND, "doc", flaky, "utf-16")
    assert [s.line for s in spans] == [0, 2]


def test_line_fetched_once_per_line():
    calls = []

    def counting(document, line):
        calls.append(line)
        return "a b c"

    decode([0, 0, 1, 0, 0, 0, 2, 1, 0, 0, 0, 2, 1, 0, 0], LEGEND, "doc", counting, "utf-16")
    assert calls == [0]


def test_decode_is_deterministic():
    provider = _provider(["let x = y", "  z"])
    data = [0, 0, 3, 0, 0, 0, 4, 1, 1, 1, 0, 4, 1, 1, 0, 1, 2, 1, 1, 0]
    first = decode(data, LEGEND, "doc", provider, "utf-16")
    second = decode(data, LEGEND, "doc", provider, "utf-16")
    assert first == second


def test_positions_are_monotonic():
    """Para um stream bem formado, (line, start) não decresce."""
    lines = ["def foo(a, b):", "    return a + b", "", "x = foo(1, 2)"]
    tokens = [
        (0, 0, 3, 0, 0), (0, 4, 3, 1, 0), (0, 8, 1, 1, 1), (0, 11, 1, 1, 1),
        (1, 4, 6, 0, 0), (1, 11, 1, 1, 0), (1, 15, 1, 1, 0),
        (3, 0, 1, 1, 0), (3, 4, 3, 1, 0),
    ]
    spans = decode(encode(tokens), LEGEND, "doc", _provider(lines), "utf-16")
    positions = [(s.line, s.start) for s in spans]
    assert positions == sorted(positions)
    assert len(spans) == len(tokens)


def test_encode_empty():
    assert encode([]) == []


def test_encode_sorts_by_position():
    data = encode([(2, 4, 8, 1, 0), (0, 0, 6, 0, 0), (0, 7, 10, 1, 0)])
    assert data == [
        0, 0, 6, 0, 0,
        0, 7, 10, 1, 0,
        2, 4, 8, 1, 0,
    ]
