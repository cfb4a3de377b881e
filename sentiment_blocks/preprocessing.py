"""
Text preprocessing for sentiment models.

Turns raw text into the word sequences the block models consume. There is
no vocabulary: unseen words get a trainable vector from the lookup table on
first use.
"""

import html
import logging
import re
from typing import Any

import numpy as np

logger = logging.getLogger("sentiment_blocks")

CONTRACTIONS = {
    "n't": " not",
    "'re": " are",
    "'s": " is",
    "'d": " would",
    "'ll": " will",
    "'ve": " have",
    "'m": " am",
}


class TextPreprocessor:
    """
    Cleans and tokenizes text.

    Args:
        max_seq_length: Optional maximum number of tokens per sentence
        lowercase: Whether to lowercase text before tokenizing
    """

    def __init__(self, max_seq_length: int | None = None, lowercase: bool = True):
        if max_seq_length is not None and max_seq_length < 1:
            raise ValueError(f"max_seq_length must be positive, got {max_seq_length}")
        self.max_seq_length = max_seq_length
        self.lowercase = lowercase

    def clean_text(self, text: str) -> str:
        """
        Clean and normalize text.

        Args:
            text: Raw text string

        Returns:
            Cleaned text string
        """
        if not isinstance(text, str):
            return ""

        text = html.unescape(text)
        text = re.sub(r"<[^>]+>", " ", text)
        text = re.sub(r"http\S+|www\S+", " ", text)
        text = re.sub(r"\S+@\S+", " ", text)

        if self.lowercase:
            text = text.lower()

        for contraction, expansion in CONTRACTIONS.items():
            text = text.replace(contraction, expansion)

        text = re.sub(r"[^A-Za-z0-9\s]", " ", text)
        text = re.sub(r"\s+", " ", text).strip()

        return text

    def tokenize(self, text: str) -> list[str]:
        """
        Tokenize text into words, truncating to ``max_seq_length``.

        Args:
            text: Raw text string

        Returns:
            List of tokens
        """
        tokens = self.clean_text(text).split()
        if self.max_seq_length is not None:
            tokens = tokens[:self.max_seq_length]
        return tokens

    def tokenize_batch(self, texts: list[str]) -> list[list[str]]:
        return [self.tokenize(text) for text in texts]


def validate_text(text: Any) -> tuple[bool, str]:
    """
    Validate input text.

    Args:
        text: Input to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if text is None:
        return False, "Text cannot be None"

    if not isinstance(text, str):
        return False, f"Text must be string, got {type(text).__name__}"

    if len(text) == 0:
        return False, "Text cannot be empty"

    if len(text) > 50000:
        return False, "Text exceeds maximum length of 50000 characters"

    return True, ""


def get_text_statistics(texts: list[str]) -> dict[str, Any]:
    """
    Compute statistics for a collection of texts.

    Args:
        texts: List of text strings

    Returns:
        Dictionary with text statistics
    """
    lengths = [len(text.split()) for text in texts if isinstance(text, str)]

    if not lengths:
        return {"error": "No valid texts found"}

    return {
        "total_texts": len(texts),
        "valid_texts": len(lengths),
        "avg_word_count": float(np.mean(lengths)),
        "std_word_count": float(np.std(lengths)),
        "min_word_count": int(np.min(lengths)),
        "max_word_count": int(np.max(lengths)),
        "median_word_count": float(np.median(lengths)),
    }
