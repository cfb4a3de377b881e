"""
Loading of labelled sentence corpora.

A corpus is a UTF-8 text file with one example per line in the form
``label<TAB>text``. Labels may be written as 0/1, neg/pos or
negative/positive.
"""

import logging
from pathlib import Path
from typing import Any

import numpy as np

from .preprocessing import TextPreprocessor

logger = logging.getLogger("sentiment_blocks")


LABEL_MAP = {
    "0": False,
    "1": True,
    "neg": False,
    "pos": True,
    "negative": False,
    "positive": True,
}
REVERSE_LABEL_MAP = {False: "negative", True: "positive"}


class DataValidationError(Exception):
    """Exception raised for data validation errors."""
    pass


def parse_label(raw: str) -> bool | None:
    """Map a label string to a boolean, or None if it is not recognised."""
    return LABEL_MAP.get(raw.strip().lower())


def validate_sample(tokens: Any, label: Any) -> tuple[bool, str]:
    """
    Validate a single tokenized sample.

    Args:
        tokens: Token list
        label: Label value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if tokens is None:
        return False, "Tokens are None"

    if not isinstance(tokens, list) or not all(isinstance(t, str) for t in tokens):
        return False, f"Tokens must be a list of strings, got {type(tokens).__name__}"

    if len(tokens) == 0:
        return False, "Sentence has no tokens"

    if label is None:
        return False, "Label is None"

    if not isinstance(label, (bool, np.bool_)):
        return False, f"Label must be boolean, got {type(label).__name__}"

    return True, ""


def load_labelled_sentences(
    data_path: str | Path,
    preprocessor: TextPreprocessor | None = None,
    validate: bool = True,
) -> tuple[list[list[str]], list[bool]]:
    """
    Load and tokenize a labelled corpus.

    Args:
        data_path: Path to the TSV corpus file
        preprocessor: Tokenizer; a default TextPreprocessor otherwise
        validate: Whether to skip invalid rows (otherwise they are kept)

    Returns:
        Tuple of (sentences, labels)

    Raises:
        DataValidationError: If the file is missing or has no valid rows
    """
    data_path = Path(data_path)
    if not data_path.is_file():
        raise DataValidationError(f"Corpus file does not exist: {data_path}")

    preprocessor = preprocessor or TextPreprocessor()

    sentences = []
    labels = []
    invalid_samples = []

    with open(data_path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\n")
            if not line.strip():
                continue

            raw_label, sep, text = line.partition("\t")
            if not sep:
                invalid_samples.append((line_number, "Missing tab separator"))
                continue

            label = parse_label(raw_label)
            if label is None:
                invalid_samples.append((line_number, f"Unknown label '{raw_label}'"))
                continue

            tokens = preprocessor.tokenize(text)
            if validate:
                is_valid, error = validate_sample(tokens, label)
                if not is_valid:
                    invalid_samples.append((line_number, error))
                    continue

            sentences.append(tokens)
            labels.append(label)

    if invalid_samples:
        logger.warning(
            f"Found {len(invalid_samples)} invalid samples: "
            + ", ".join(f"line {n}: {err}" for n, err in invalid_samples[:5])
        )

    if not sentences:
        raise DataValidationError(f"No valid samples found in {data_path}")

    logger.info(f"Loaded {len(sentences)} valid samples from {data_path}")

    return sentences, labels


def get_data_statistics(sentences: list[list[str]], labels: list[bool]) -> dict[str, Any]:
    """
    Compute statistics for a loaded corpus.

    Args:
        sentences: Tokenized sentences
        labels: Boolean labels

    Returns:
        Dictionary with corpus statistics
    """
    if not sentences or not labels:
        return {"error": "Empty dataset"}

    labels_array = np.array(labels, dtype=bool)
    lengths = [len(sentence) for sentence in sentences]

    pos_count = int(np.sum(labels_array))
    neg_count = len(labels) - pos_count

    return {
        "total_samples": len(sentences),
        "positive_samples": pos_count,
        "negative_samples": neg_count,
        "class_balance": {
            "positive_ratio": pos_count / len(labels),
            "negative_ratio": neg_count / len(labels),
        },
        "vocabulary_size": len({word for sentence in sentences for word in sentence}),
        "word_count": {
            "mean": float(np.mean(lengths)),
            "std": float(np.std(lengths)),
            "min": int(np.min(lengths)),
            "max": int(np.max(lengths)),
            "median": float(np.median(lengths)),
        },
    }


def split_data(
    sentences: list[list[str]],
    labels: list[bool],
    validation_split: float = 0.1,
    random_seed: int = 42,
) -> tuple[list[list[str]], list[bool], list[list[str]], list[bool]]:
    """
    Split data into training and validation sets.

    Args:
        sentences: Tokenized sentences
        labels: Boolean labels
        validation_split: Fraction of data to use for validation
        random_seed: Random seed for reproducibility

    Returns:
        Tuple of (train_sentences, train_labels, val_sentences, val_labels)
    """
    if len(sentences) != len(labels):
        raise ValueError(
            f"Number of sentences ({len(sentences)}) must match "
            f"number of labels ({len(labels)})"
        )

    rng = np.random.default_rng(random_seed)
    indices = rng.permutation(len(sentences))

    n_val = int(len(sentences) * validation_split)
    val_indices = indices[:n_val]
    train_indices = indices[n_val:]

    train_sentences = [sentences[i] for i in train_indices]
    train_labels = [labels[i] for i in train_indices]
    val_sentences = [sentences[i] for i in val_indices]
    val_labels = [labels[i] for i in val_indices]

    logger.info(f"Split data: {len(train_sentences)} train, {len(val_sentences)} validation")

    return train_sentences, train_labels, val_sentences, val_labels
