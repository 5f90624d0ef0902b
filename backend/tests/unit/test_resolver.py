# backend/tests/unit/test_resolver.py
import pytest

from convers.models.flow import FlowData
from convers.workflows.resolver import resolve_block, resolve_entry_block


def blocks_of(raw_blocks):
    return FlowData.model_validate({"blocks": raw_blocks}).blocks


def test_entry_is_block_without_incoming_edges():
    blocks = blocks_of([
        {"id": "B", "type": "question", "content": "Pick", "next_options": {"Red": "C"}},
        {"id": "A", "type": "message", "content": "Hi", "next": "B"},
        {"id": "C", "type": "message", "content": "Bye"},
    ])
    assert resolve_entry_block(blocks).id == "A"


def test_entry_ties_broken_by_input_order():
    blocks = blocks_of([
        {"id": "X", "type": "message", "content": "x"},
        {"id": "Y", "type": "message", "content": "y"},
    ])
    assert resolve_entry_block(blocks).id == "X"


def test_entry_counts_every_successor_field():
    blocks = blocks_of([
        {"id": "Q", "type": "yes_no", "content": "?", "next_yes": "Y", "next_no": "N"},
        {"id": "Y", "type": "message", "content": "y"},
        {"id": "N", "type": "question", "content": "n", "next_options": {"Back": "Q"}},
        {"id": "S", "type": "message", "content": "start", "next": "Q"},
    ])
    assert resolve_entry_block(blocks).id == "S"


def test_entry_falls_back_to_first_block_on_cycle():
    blocks = blocks_of([
        {"id": "A", "type": "message", "content": "a", "next": "B"},
        {"id": "B", "type": "message", "content": "b", "next": "A"},
    ])
    assert resolve_entry_block(blocks).id == "A"


def test_single_block_flow_resolves_to_it():
    blocks = blocks_of([{"id": "only", "type": "message", "content": "hello", "next": "only"}])
    assert resolve_entry_block(blocks).id == "only"


def test_entry_ignores_dangling_references():
    blocks = blocks_of([
        {"id": "A", "type": "message", "content": "a", "next": "missing"},
        {"id": "B", "type": "message", "content": "b", "next": "A"},
    ])
    assert resolve_entry_block(blocks).id == "B"


def test_entry_is_deterministic_and_from_input():
    blocks = blocks_of([
        {"id": "1", "type": "message", "content": "one", "next": "2"},
        {"id": "2", "type": "yes_no", "content": "two", "next_yes": "3"},
        {"id": "3", "type": "message", "content": "three"},
    ])
    first = resolve_entry_block(blocks)
    assert first in blocks
    assert all(resolve_entry_block(blocks) is first for _ in range(5))


def test_entry_of_empty_flow_raises():
    with pytest.raises(ValueError):
        resolve_entry_block([])


def test_resolve_block_returns_none_when_absent():
    blocks = blocks_of([{"id": "A", "type": "message", "content": "a"}])
    assert resolve_block(blocks, "A").id == "A"
    assert resolve_block(blocks, "Z") is None
    assert resolve_block(blocks, None) is None
