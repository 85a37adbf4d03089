"""Text normalization into word and punctuation tokens."""

from __future__ import annotations

import re

URL_PATTERN = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)

# Words keep inner apostrophes ("don't"); every other non-space,
# non-word character becomes a token of its own.
TOKEN_PATTERN = re.compile(r"[\w]+(?:['’][\w]+)*|[^\w\s]", re.UNICODE)

SENTENCE_END = frozenset({".", "!", "?"})


def normalize(raw_text: str) -> list[str]:
    """
    Lower-case text and split it into tokens.

    Punctuation is emitted as standalone tokens. URLs are dropped.

    Args:
        raw_text: Raw document text

    Returns:
        List of tokens in document order
    """
    text = URL_PATTERN.sub(" ", raw_text.lower())
    return [token.replace("’", "'") for token in TOKEN_PATTERN.findall(text)]
