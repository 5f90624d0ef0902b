# /convers/workflows/resolver.py

"""
Pure graph helpers for flow block collections.

All functions are:
- Pure (no side effects)
- Deterministic (same input order = same output)
- No I/O and no logging
"""

from typing import Dict, Optional, Sequence
from convers.models.flow import BaseBlock


def resolve_entry_block(blocks: Sequence[BaseBlock]) -> BaseBlock:
    """
    Find the block a new conversation starts on.

    In-degree is counted over every successor reference (next, next_yes,
    next_no and each next_options target). The first block, in input order,
    with no incoming edge wins; when every block has one (a purely cyclic
    graph), the first block is used.

    Args:
        blocks: Non-empty ordered block collection of one flow

    Returns:
        The entry block

    Raises:
        ValueError: If blocks is empty
    """
    if not blocks:
        raise ValueError("Cannot resolve the entry block of an empty flow")

    in_degree: Dict[str, int] = {block.id: 0 for block in blocks}
    for block in blocks:
        for target_id in block.successor_ids():
            if target_id in in_degree:
                in_degree[target_id] += 1

    for block in blocks:
        if in_degree[block.id] == 0:
            return block
    return blocks[0]


def resolve_block(blocks: Sequence[BaseBlock], block_id: Optional[str]) -> Optional[BaseBlock]:
    """
    Look a block up by exact id.

    Returns None when the id is empty or absent; callers treat that as
    "no transition" or as a stale conversation position.
    """
    if not block_id:
        return None
    for block in blocks:
        if block.id == block_id:
            return block
    return None
