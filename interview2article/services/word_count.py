"""Word counting for mixed CJK / Latin text.

Each CJK ideograph counts as one word; each whitespace-delimited Latin token
counts as one word. Markdown markers are stripped first so headings and
emphasis do not inflate the count.
"""

import math
import re

# Average reading speed used for estimates
WORDS_PER_MINUTE = 200

CJK_PATTERN = re.compile(r"[㐀-䶿一-鿿豈-﫿]")

_CODE_FENCE = re.compile(r"```[^\n]*")
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_HEADING = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^\s*>\s?", re.MULTILINE)
_LIST_MARKER = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+", re.MULTILINE)
_RULE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$", re.MULTILINE)
_EMPHASIS = re.compile(r"[*_~`]+")


def strip_markdown(text: str) -> str:
    """Remove markdown syntax, keeping the readable text."""
    text = _CODE_FENCE.sub(" ", text)
    text = _IMAGE.sub(r"\1", text)
    text = _LINK.sub(r"\1", text)
    text = _RULE.sub(" ", text)
    text = _HEADING.sub("", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _LIST_MARKER.sub("", text)
    return _EMPHASIS.sub("", text)


def count_words(text: str | None) -> int:
    """Count words in markdown text.

    Args:
        text: Markdown or plain text, possibly mixing CJK and Latin scripts.

    Returns:
        CJK ideograph count plus Latin token count.
    """
    if not text:
        return 0

    plain = strip_markdown(text)
    cjk_count = len(CJK_PATTERN.findall(plain))

    # Tokens made only of punctuation do not count
    latin = CJK_PATTERN.sub(" ", plain)
    latin_count = sum(1 for token in latin.split() if re.search(r"\w", token))

    return cjk_count + latin_count


def estimate_read_time(word_count: int) -> int:
    """Estimated read time in whole minutes (rounded up)."""
    if word_count <= 0:
        return 0
    return math.ceil(word_count / WORDS_PER_MINUTE)
