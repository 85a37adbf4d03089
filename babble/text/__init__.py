"""Text processing: tokenization and transition extraction."""

from babble.text.extract import extract_transitions
from babble.text.tokenize import SENTENCE_END, normalize

__all__ = ["extract_transitions", "normalize", "SENTENCE_END"]
