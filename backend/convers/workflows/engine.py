# /convers/workflows/engine.py

"""
Pure input-matching rules for the flow engine.

Given the block a party is positioned at and the text they sent, this module
decides which outgoing edge to follow, or which clarification to send back.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- No store access
- No message sending
- No logging
"""

from typing import FrozenSet, Optional, TypedDict
from convers.config import strings
from convers.models.flow import BaseBlock, MessageBlock, QuestionBlock, YesNoBlock


class TransitionResult(TypedDict):
    """Outcome of matching one inbound message against a block."""
    target_id: Optional[str]
    clarification: Optional[str]


def no_transition() -> TransitionResult:
    return {"target_id": None, "clarification": None}


def normalize_input(text: Optional[str]) -> str:
    """Trim and lower-case inbound text before any comparison."""
    return (text or "").strip().lower()


def is_reset_command(text: Optional[str], reset_keyword: str) -> bool:
    return normalize_input(text) == normalize_input(reset_keyword)


def match_option(block: QuestionBlock, text: Optional[str]) -> Optional[str]:
    """
    Exact, case-insensitive match of the answer against the option labels.

    Returns the target block id of the first matching label (in definition
    order), or None. No partial or fuzzy matching.
    """
    answer = normalize_input(text)
    for label, target_id in block.next_options.items():
        if normalize_input(label) == answer:
            return target_id
    return None


def match_yes_no(
    block: YesNoBlock,
    text: Optional[str],
    affirmative: FrozenSet[str] = strings.AFFIRMATIVE_TOKENS,
    negative: FrozenSet[str] = strings.NEGATIVE_TOKENS,
) -> TransitionResult:
    answer = normalize_input(text)
    if answer in affirmative:
        return {"target_id": block.next_yes, "clarification": None}
    if answer in negative:
        return {"target_id": block.next_no, "clarification": None}
    return {"target_id": None, "clarification": strings.ANSWER_YES_OR_NO}


def match_transition(block: BaseBlock, text: Optional[str]) -> TransitionResult:
    """
    Decide the transition for an inbound message on the given block.

    - message: always follows `next`, whatever the text
    - question with options: exact label match, else a "didn't understand" prompt
    - yes_no: affirmative/negative tokens, else a "yes or no" prompt
    - anything else (unknown type, question without options): no action

    A target id in the result may still be dangling; resolving it is the
    caller's job.
    """
    if isinstance(block, MessageBlock):
        return {"target_id": block.next, "clarification": None}

    if isinstance(block, QuestionBlock):
        if not block.next_options:
            return no_transition()
        target_id = match_option(block, text)
        if target_id is None:
            return {"target_id": None, "clarification": strings.DID_NOT_UNDERSTAND}
        return {"target_id": target_id, "clarification": None}

    if isinstance(block, YesNoBlock):
        return match_yes_no(block, text)

    return no_transition()
