"""
test_patch.py - Testes para aplicação de edits delta

Propósito:
    Validar remoção/inserção por registro, a ordem decrescente de start e
    a rejeição de edits inconsistentes. A ordem de aplicação é a
    propriedade mais importante: aplicar em ordem crescente desloca
    registros não relacionados.
"""

from __future__ import annotations

import pytest
from lsprotocol.types import SemanticTokensEdit

from semantic_sync.errors import PatchError
from semantic_sync.patch import Edit, apply_edits, records

T0 = [0, 0, 1, 0, 0]
T1 = [0, 2, 1, 1, 0]
T2 = [1, 0, 3, 0, 1]
T3 = [0, 4, 2, 1, 0]
TX = [0, 9, 9, 1, 1]
TY = [2, 0, 1, 0, 0]


def _manual(stream, edits):
    """Aplica edits um a um, na ordem recebida, sem ordenar."""
    result = list(stream)
    for edit in edits:
        begin = edit.start * 5
        result[begin:begin + edit.delete_count * 5] = edit.data
    return result


def test_replace_middle_record():
    """Exemplo: 3 registros, edit {start:1, deleteCount:1, data:[X]}."""
    stream = T0 + T1 + T2
    result = apply_edits(stream, [Edit(start=1, delete_count=1, data=tuple(TX))])
    assert records(result) == [tuple(T0), tuple(TX), tuple(T2)]


def test_edits_applied_in_descending_start():
    """Exemplo: insere no índice 2 e remove o índice 0 do array ORIGINAL."""
    stream = T0 + T1 + T2
    edits = [
        Edit(start=2, delete_count=0, data=tuple(TX)),
        Edit(start=0, delete_count=1, data=()),
    ]
    result = apply_edits(stream, edits)
    assert records(result) == [tuple(T1), tuple(TX), tuple(T2)]


def test_input_order_does_not_matter():
    stream = T0 + T1 + T2
    edits = [
        Edit(start=0, delete_count=1, data=()),
        Edit(start=2, delete_count=0, data=tuple(TX)),
    ]
    assert apply_edits(stream, edits) == apply_edits(stream, list(reversed(edits)))


def test_matches_manual_descending_application():
    stream = T0 + T1 + T2 + T3
    edits = [
        Edit(start=1, delete_count=1, data=tuple(TX)),
        Edit(start=3, delete_count=1, data=tuple(TY + TX)),
        Edit(start=0, delete_count=0, data=tuple(TY)),
    ]
    expected = _manual(stream, sorted(edits, key=lambda e: e.start, reverse=True))
    assert apply_edits(stream, edits) == expected


def test_ascending_application_is_wrong():
    """Guarda de regressão: ordem crescente produz resultado diferente."""
    stream = T0 + T1 + T2
    edits = [
        Edit(start=0, delete_count=1, data=()),
        Edit(start=2, delete_count=0, data=tuple(TX)),
    ]
    ascending = _manual(stream, sorted(edits, key=lambda e: e.start))
    assert apply_edits(stream, edits) != ascending


def test_pure_insertion():
    result = apply_edits(T0 + T1, [Edit(start=1, delete_count=0, data=tuple(TX + TY))])
    assert records(result) == [tuple(T0), tuple(TX), tuple(TY), tuple(T1)]


def test_pure_deletion():
    result = apply_edits(T0 + T1 + T2, [Edit(start=1, delete_count=2)])
    assert records(result) == [tuple(T0)]


def test_append_at_end():
    result = apply_edits(T0, [Edit(start=1, delete_count=0, data=tuple(T1))])
    assert result == T0 + T1


def test_empty_edit_list_is_noop():
    stream = T0 + T1
    assert apply_edits(stream, []) == stream


def test_copy_on_write_by_default():
    stream = T0 + T1
    result = apply_edits(stream, [Edit(start=0, delete_count=1)])
    assert stream == T0 + T1
    assert result == T1


def test_in_place():
    stream = T0 + T1
    result = apply_edits(stream, [Edit(start=0, delete_count=1)], in_place=True)
    assert result is stream
    assert stream == T1


def test_same_start_keeps_received_order():
    """Dois inserts no mesmo start: o segundo recebido fica antes."""
    result = apply_edits(
        T0,
        [
            Edit(start=0, delete_count=0, data=tuple(TX)),
            Edit(start=0, delete_count=0, data=tuple(TY)),
        ],
    )
    assert records(result) == [tuple(TY), tuple(TX), tuple(T0)]


def test_delete_past_end_raises():
    with pytest.raises(PatchError):
        apply_edits(T0 + T1, [Edit(start=1, delete_count=2)])


def test_start_past_end_raises():
    with pytest.raises(PatchError):
        apply_edits(T0, [Edit(start=2, delete_count=0, data=tuple(T1))])


def test_negative_values_raise():
    with pytest.raises(PatchError):
        apply_edits(T0, [Edit(start=-1, delete_count=0)])
    with pytest.raises(PatchError):
        apply_edits(T0, [Edit(start=0, delete_count=-1)])


def test_misaligned_data_raises():
    with pytest.raises(PatchError):
        apply_edits(T0, [Edit(start=0, delete_count=0, data=(1, 2, 3))])


def test_misaligned_stream_raises():
    with pytest.raises(PatchError):
        apply_edits([0, 0, 1], [])


def test_failed_patch_leaves_stream_untouched():
    stream = T0 + T1
    with pytest.raises(PatchError):
        apply_edits(stream, [Edit(start=5, delete_count=1)])
    assert stream == T0 + T1


def test_from_lsp_converts_integer_offsets():
    edit = Edit.from_lsp(SemanticTokensEdit(start=10, delete_count=5, data=TX))
    assert edit == Edit(start=2, delete_count=1, data=tuple(TX))


def test_from_lsp_dict_without_data():
    edit = Edit.from_lsp({"start": 5, "deleteCount": 10})
    assert edit == Edit(start=1, delete_count=2, data=())


def test_from_lsp_misaligned_raises():
    with pytest.raises(PatchError):
        Edit.from_lsp({"start": 3, "deleteCount": 5, "data": []})


def test_records_groups_by_five():
    assert records(T0 + T1 + [7]) == [tuple(T0), tuple(T1)]
