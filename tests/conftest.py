"""
Pytest configuration and fixtures for sentiment-blocks tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sentiment_blocks.lookup import LookupTable
from sentiment_blocks.model import (
    RecurrentNeuralNetworkModel,
    SumMultOfWordVectorsModel,
    SumOfWordVectorsModel,
)
from sentiment_blocks.preprocessing import TextPreprocessor
from sentiment_blocks.utils import set_seed


@pytest.fixture(autouse=True)
def fixed_seed():
    """Make parameter initialization reproducible in every test."""
    set_seed(42)


@pytest.fixture
def sample_texts() -> list[str]:
    """Sample texts for testing."""
    return [
        "This movie was absolutely fantastic! I loved every minute.",
        "Terrible film. Complete waste of time.",
        "An okay movie, nothing special.",
        "Best movie ever! Highly recommended!",
        "Boring and predictable story.",
    ]


@pytest.fixture
def sample_labels() -> list[bool]:
    """Sample labels corresponding to sample_texts."""
    return [True, False, False, True, False]


@pytest.fixture
def preprocessor() -> TextPreprocessor:
    return TextPreprocessor()


@pytest.fixture
def sample_sentences(preprocessor, sample_texts) -> list[list[str]]:
    """Tokenized sample texts."""
    return preprocessor.tokenize_batch(sample_texts)


@pytest.fixture
def lookup_table() -> LookupTable:
    return LookupTable()


@pytest.fixture
def sum_model(lookup_table) -> SumOfWordVectorsModel:
    return SumOfWordVectorsModel(lookup_table, embedding_size=4, regularization_strength=0.01)


@pytest.fixture
def sum_mult_model(lookup_table) -> SumMultOfWordVectorsModel:
    return SumMultOfWordVectorsModel(lookup_table, embedding_size=4, regularization_strength=0.01)


@pytest.fixture
def rnn_model(lookup_table) -> RecurrentNeuralNetworkModel:
    return RecurrentNeuralNetworkModel(
        lookup_table,
        embedding_size=4,
        hidden_size=3,
        vector_regularization_strength=0.01,
        matrix_regularization_strength=0.02,
    )


@pytest.fixture
def vectors_file(tmp_path) -> Path:
    """Pretrained vector file with three 3-dimensional vectors."""
    path = tmp_path / "vectors.txt"
    path.write_text(
        "good 0.5 0.25 -0.125\n"
        "bad -0.5 -0.25 0.125\n"
        "\n"
        "movie 0.0 1.0 0.0\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def corpus_file(tmp_path) -> Path:
    """Labelled corpus in label<TAB>text format."""
    path = tmp_path / "corpus.tsv"
    path.write_text(
        "1\tGreat movie, loved it!\n"
        "0\tTerrible film. Hated it.\n"
        "pos\tWonderful acting\n"
        "negative\tAwful plot\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)
