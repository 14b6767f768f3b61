"""
Deterministic cleanup of final recognizer output.
No AI. No grammar. Only exact repetition artifacts are removed.
"""

PHRASE_BLOCK_SIZES = (2, 3)


def _collapse_adjacent(tokens: list[str]) -> list[str]:
    collapsed: list[str] = []
    for token in tokens:
        if collapsed and collapsed[-1] == token:
            continue
        collapsed.append(token)
    return collapsed


def _collapse_blocks(tokens: list[str], size: int) -> list[str]:
    collapsed: list[str] = []
    i = 0
    while i < len(tokens):
        block = tokens[i:i + size]
        if len(block) == size:
            j = i + size
            while tokens[j:j + size] == block:
                j += size
            if j > i + size:
                collapsed.extend(block)
                i = j
                continue
        collapsed.append(tokens[i])
        i += 1
    return collapsed


def _single_pass(tokens: list[str]) -> list[str]:
    tokens = _collapse_adjacent(tokens)
    for size in PHRASE_BLOCK_SIZES:
        tokens = _collapse_blocks(tokens, size)
    return tokens


def normalize_utterance(text: str) -> str:
    """
    "I I I want to to work on on backend backend systems" -> "I want to work on backend systems"

    Runs the collapse pass until nothing changes, so the result is a
    fixed point: normalize_utterance(normalize_utterance(x)) == normalize_utterance(x).
    """
    tokens = str(text or "").lower().split()
    if not tokens:
        return ""

    while True:
        collapsed = _single_pass(tokens)
        if collapsed == tokens:
            break
        tokens = collapsed

    joined = " ".join(tokens)
    first = joined[:1].upper()
    if len(first) != 1:
        # e.g. "ß".upper() == "SS" would not survive a second pass
        first = joined[:1]
    return first + joined[1:]
