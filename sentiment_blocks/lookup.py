"""
Word lookup table.

Maps word strings to the parameter blocks that represent them. Trainable
vectors are created on first use; fixed vectors come from a pretrained
vector file and never receive gradient updates. A word always resolves to the
same block instance, which is what lets gradients from every occurrence of a
word accumulate in one place.
"""

import logging
from pathlib import Path

import numpy as np

from .blocks import Block, ShapeError, VectorConstant, VectorParam

logger = logging.getLogger("sentiment_blocks")


class LoadError(Exception):
    """Exception raised when pretrained word vectors cannot be loaded."""
    pass


class FormatError(LoadError):
    """Exception raised for malformed rows in a pretrained vector file."""
    pass


def parse_word_vector_line(line: str, dim: int, line_number: int = 0) -> tuple[str, np.ndarray]:
    """
    Parse one ``word v1 ... vdim`` row.

    Args:
        line: Raw line without trailing newline
        dim: Expected vector dimension
        line_number: Line number used in error messages

    Returns:
        Tuple of (word, vector)

    Raises:
        FormatError: If the row has the wrong arity or unparsable numbers
    """
    fields = line.split()
    if len(fields) != dim + 1:
        raise FormatError(
            f"Line {line_number}: expected a word and {dim} values, got {len(fields) - 1} values"
        )
    word = fields[0]
    try:
        vector = np.array([float(value) for value in fields[1:]], dtype=float)
    except ValueError as e:
        raise FormatError(f"Line {line_number}: {e}") from e
    if not np.all(np.isfinite(vector)):
        raise FormatError(f"Line {line_number}: non-finite value in vector for '{word}'")
    return word, vector


class LookupTable:
    """
    Registry of word representations for one training run.

    Construct once and pass the same instance to every model that should
    share word vectors.
    """

    def __init__(self):
        self.trainable_word_vectors: dict[str, VectorParam] = {}
        self.fixed_word_vectors: dict[str, VectorConstant] = {}
        self.loaded_paths: set[str] = set()

    def add_trainable_word_vector(self, word: str, dim: int) -> VectorParam:
        """
        Return the trainable vector of ``word``, creating it if needed.

        Raises:
            ShapeError: If the word already has a vector of another dimension
        """
        vector = self.trainable_word_vectors.get(word)
        if vector is None:
            vector = VectorParam(dim, name=word)
            self.trainable_word_vectors[word] = vector
        elif vector.dim != dim:
            raise ShapeError(
                f"Word '{word}' already has a vector of dimension {vector.dim}, requested {dim}"
            )
        return vector

    def get_fixed_or_trained(self, word: str, dim: int) -> Block:
        """Prefer the pretrained vector of ``word``; fall back to a trainable one."""
        fixed = self.fixed_word_vectors.get(word)
        if fixed is not None:
            if fixed.param.shape != (dim,):
                raise ShapeError(
                    f"Pretrained vector for '{word}' has shape {fixed.param.shape}, requested ({dim},)"
                )
            return fixed
        return self.add_trainable_word_vector(word, dim)

    def load_pretrained_word_vectors(self, path: str | Path, dim: int) -> int:
        """
        Load fixed word vectors from a plain-text file.

        Every row must hold a word followed by ``dim`` floats. The whole file
        is parsed before the table is touched, so a malformed file leaves the
        table unchanged. Loading a path twice is a no-op.

        Args:
            path: Path to the vector file
            dim: Expected vector dimension

        Returns:
            Number of vectors added by this call

        Raises:
            LoadError: If the file cannot be read
            FormatError: If a row is malformed
        """
        path = Path(path)
        key = str(path.resolve())
        if key in self.loaded_paths:
            logger.debug(f"Pretrained vectors from {path} already loaded")
            return 0

        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"Cannot read pretrained vectors from {path}: {e}") from e

        parsed: dict[str, np.ndarray] = {}
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            word, vector = parse_word_vector_line(line, dim, line_number)
            parsed[word] = vector

        for word, vector in parsed.items():
            self.fixed_word_vectors[word] = VectorConstant(vector, name=word)
        self.loaded_paths.add(key)

        logger.info(f"Loaded {len(parsed)} pretrained word vectors of dimension {dim} from {path}")
        return len(parsed)

    def trainable_parameters(self) -> list[VectorParam]:
        return list(self.trainable_word_vectors.values())

    def __contains__(self, word: str) -> bool:
        return word in self.trainable_word_vectors or word in self.fixed_word_vectors

    def __len__(self) -> int:
        return len(set(self.trainable_word_vectors) | set(self.fixed_word_vectors))
