"""
Sentiment models built from computation graph blocks.

Each model turns a sentence (a list of word strings) into a graph: words are
looked up as vector blocks, composed into a sentence vector, scored with
``Sigmoid(Dot(param_w, sentence))`` and, for training, combined with the gold
label into a negative log-likelihood plus regularization loss.

Available composition strategies:
- Sum of word vectors
- Sum of word vectors plus their elementwise product
- Recurrent network ``h_t = tanh(Wh h_{t-1} + Wx x_t + b)``, optionally with
  dropout on the final state
"""

import logging
from pathlib import Path
from typing import Any

import numpy as np

from .blocks import (
    Block,
    Dot,
    Dropout,
    MatrixParam,
    Mul,
    ParamBlock,
    Sigmoid,
    Sum,
    Tanh,
    VectorConstant,
    VectorMul,
    VectorParam,
)
from .lookup import LookupTable
from .loss import L2Regularization, Loss, LossSum, NegativeLogLikelihoodLoss

logger = logging.getLogger("sentiment_blocks")


class Model:
    """
    Base class for sentiment models.

    Subclasses define how words become vectors, how word vectors become a
    sentence vector, how a sentence vector is scored and what the
    regularization term looks like. Trainable word vectors live in the
    shared lookup table; every other parameter is owned by the model.

    Args:
        lookup_table: Word registry shared with other models of the same run
        pretrained_vectors_path: Optional file of fixed word vectors; when
            given, words resolve to pretrained vectors first
    """

    def __init__(
        self,
        lookup_table: LookupTable,
        embedding_size: int,
        pretrained_vectors_path: str | Path | None = None,
    ):
        self.lookup_table = lookup_table
        self.embedding_size = embedding_size
        self.pretrained_vectors_path = pretrained_vectors_path
        self.vector_params: dict[str, VectorParam] = {}
        self.matrix_params: dict[str, MatrixParam] = {}
        self.is_test_time = False

        if pretrained_vectors_path is not None:
            lookup_table.load_pretrained_word_vectors(pretrained_vectors_path, embedding_size)

    def word_to_vector(self, word: str) -> Block:
        """
        Map a word to its trainable or fixed vector representation.

        Args:
            word: Input word

        Returns:
            Block evaluating to the word's embedding
        """
        if self.pretrained_vectors_path is not None:
            return self.lookup_table.get_fixed_or_trained(word, self.embedding_size)
        return self.lookup_table.add_trainable_word_vector(word, self.embedding_size)

    def word_vectors_to_sentence_vector(self, words: list[Block]) -> Block:
        raise NotImplementedError

    def score_sentence(self, sentence: Block) -> Block:
        """
        Score a sentence vector.

        Returns:
            Block evaluating to a probability of positive sentiment
        """
        return Sigmoid(Dot(self.vector_params["param_w"], sentence))

    def regularizer(self, words: list[Block]) -> Loss:
        raise NotImplementedError

    def _sentence_to_score(self, sentence: list[str]) -> tuple[list[Block], Block]:
        if len(sentence) == 0:
            raise ValueError("Sentence must contain at least one word")
        word_vectors = [self.word_to_vector(word) for word in sentence]
        sentence_vector = self.word_vectors_to_sentence_vector(word_vectors)
        return word_vectors, self.score_sentence(sentence_vector)

    def score(self, sentence: list[str]) -> float:
        """
        Probability that a sentence is of positive sentiment.

        Args:
            sentence: Sequence of words

        Returns:
            Score between 0.0 and 1.0
        """
        _, score = self._sentence_to_score(sentence)
        return score.forward()

    def predict(self, sentence: list[str], threshold: float = 0.5) -> bool:
        """
        Predict whether a sentence is of positive sentiment.

        The sentence is scored in evaluation mode, so dropout is disabled. The
        previous mode is restored afterwards.

        Args:
            sentence: Sequence of words
            threshold: Score at or above which the sentence counts as positive

        Returns:
            True for positive sentiment, False for negative
        """
        was_test_time = self.is_test_time
        self.eval()
        try:
            return self.score(sentence) >= threshold
        finally:
            self.is_test_time = was_test_time

    def loss(self, sentence: list[str], target: bool) -> Loss:
        """
        Build the training loss for one labelled sentence.

        The returned block is not evaluated yet; call ``forward()`` and then
        ``backward(1.0)`` on it.

        Args:
            sentence: Sequence of words
            target: Gold label (True for positive)

        Returns:
            Negative log-likelihood plus regularization
        """
        target_score = 1.0 if target else 0.0
        word_vectors, score = self._sentence_to_score(sentence)
        return LossSum(NegativeLogLikelihoodLoss(score, target_score), self.regularizer(word_vectors))

    def train(self) -> "Model":
        self.is_test_time = False
        return self

    def eval(self) -> "Model":
        self.is_test_time = True
        return self

    def parameters(self) -> list[ParamBlock]:
        """All trainable parameters: model parameters and trainable word vectors."""
        params: list[ParamBlock] = list(self.vector_params.values()) + list(self.matrix_params.values())
        return params + self.lookup_table.trainable_parameters()

    def reset_gradients(self) -> None:
        for param in self.parameters():
            param.reset_gradient()

    def _add_vector_param(self, name: str, dim: int, init: float | None = None) -> VectorParam:
        param = VectorParam(dim, init=init, name=name)
        self.vector_params[name] = param
        return param

    def _add_matrix_param(self, name: str, rows: int, cols: int) -> MatrixParam:
        param = MatrixParam(rows, cols, name=name)
        self.matrix_params[name] = param
        return param


class SumOfWordVectorsModel(Model):
    """
    Sentence vector is the sum of its word vectors.

    Args:
        lookup_table: Shared word registry
        embedding_size: Dimension of the word vectors
        regularization_strength: L2 strength on the word vectors and param_w
        pretrained_vectors_path: Optional file of fixed word vectors
    """

    def __init__(
        self,
        lookup_table: LookupTable,
        embedding_size: int,
        regularization_strength: float = 0.0,
        pretrained_vectors_path: str | Path | None = None,
    ):
        super().__init__(lookup_table, embedding_size, pretrained_vectors_path)
        self.regularization_strength = regularization_strength
        self._add_vector_param("param_w", embedding_size)

        logger.info(
            f"{type(self).__name__} initialized with embedding size {embedding_size}, "
            f"regularization {regularization_strength}"
        )

    def word_vectors_to_sentence_vector(self, words: list[Block]) -> Block:
        return Sum(words)

    def regularizer(self, words: list[Block]) -> Loss:
        return L2Regularization(self.regularization_strength, self.vector_params["param_w"], *words)


class SumMultOfWordVectorsModel(SumOfWordVectorsModel):
    """Sum of word vectors plus the elementwise product of all of them."""

    def word_vectors_to_sentence_vector(self, words: list[Block]) -> Block:
        if len(words) == 1:
            return Sum(words)
        product = VectorMul(words[0], words[1])
        for word in words[2:]:
            product = VectorMul(product, word)
        return Sum([Sum(words), product])


class RecurrentNeuralNetworkModel(Model):
    """
    Elman-style recurrent network over the word vectors.

    The final hidden state is the sentence vector. The initial state is a
    fresh zero vector for every sentence and the bias starts at 1.0.

    Args:
        lookup_table: Shared word registry
        embedding_size: Dimension of the word vectors
        hidden_size: Dimension of the hidden state
        vector_regularization_strength: L2 strength on word vectors and param_w
        matrix_regularization_strength: L2 strength on param_Wx and param_Wh
        dropout_prob: Dropout probability on the final hidden state (0 disables)
        pretrained_vectors_path: Optional file of fixed word vectors
        rng: Optional numpy Generator used for dropout masks
    """

    def __init__(
        self,
        lookup_table: LookupTable,
        embedding_size: int,
        hidden_size: int,
        vector_regularization_strength: float = 0.0,
        matrix_regularization_strength: float = 0.0,
        dropout_prob: float = 0.0,
        pretrained_vectors_path: str | Path | None = None,
        rng: np.random.Generator | None = None,
    ):
        if not 0.0 <= dropout_prob < 1.0:
            raise ValueError(f"Dropout probability must be in [0, 1), got {dropout_prob}")
        super().__init__(lookup_table, embedding_size, pretrained_vectors_path)
        self.hidden_size = hidden_size
        self.vector_regularization_strength = vector_regularization_strength
        self.matrix_regularization_strength = matrix_regularization_strength
        self.dropout_prob = dropout_prob
        self.rng = rng

        self._add_vector_param("param_w", hidden_size)
        self._add_vector_param("param_b", hidden_size, init=1.0)
        self._add_matrix_param("param_Wx", hidden_size, embedding_size)
        self._add_matrix_param("param_Wh", hidden_size, hidden_size)

        logger.info(
            f"RecurrentNeuralNetworkModel initialized with embedding size {embedding_size}, "
            f"hidden size {hidden_size}, dropout {dropout_prob}"
        )

    def initial_state(self) -> VectorConstant:
        return VectorConstant(np.zeros(self.hidden_size), name="h0")

    def word_vectors_to_sentence_vector(self, words: list[Block]) -> Block:
        w_h = self.matrix_params["param_Wh"]
        w_x = self.matrix_params["param_Wx"]
        b = self.vector_params["param_b"]

        state: Block = self.initial_state()
        for word in words:
            state = Tanh(Sum([Mul(w_h, state), Mul(w_x, word), b]))

        if self.dropout_prob > 0:
            state = Dropout(self.dropout_prob, state, is_test_time=self.is_test_time, rng=self.rng)
        return state

    def regularizer(self, words: list[Block]) -> Loss:
        return LossSum(
            L2Regularization(self.vector_regularization_strength, self.vector_params["param_w"], *words),
            L2Regularization(
                self.matrix_regularization_strength,
                self.matrix_params["param_Wx"],
                self.matrix_params["param_Wh"],
            ),
        )


MODEL_TYPES = {
    "sum": SumOfWordVectorsModel,
    "sum_mult": SumMultOfWordVectorsModel,
    "rnn": RecurrentNeuralNetworkModel,
}


def create_model_from_config(config: dict[str, Any], lookup_table: LookupTable) -> Model:
    """
    Create model from configuration dictionary.

    Args:
        config: Configuration with a ``model`` section
        lookup_table: Word registry the model should use

    Returns:
        Initialized model

    Raises:
        ValueError: If the model type is unknown
    """
    model_config = config.get("model", {})
    model_type = model_config.get("type", "sum")

    if model_type not in MODEL_TYPES:
        raise ValueError(
            f"Unknown model type '{model_type}', expected one of {sorted(MODEL_TYPES)}"
        )

    embedding_size = model_config.get("embedding_size", 10)
    pretrained_vectors_path = model_config.get("pretrained_vectors_path")

    if model_type == "rnn":
        return RecurrentNeuralNetworkModel(
            lookup_table,
            embedding_size=embedding_size,
            hidden_size=model_config.get("hidden_size", 10),
            vector_regularization_strength=model_config.get("vector_regularization_strength", 0.0),
            matrix_regularization_strength=model_config.get("matrix_regularization_strength", 0.0),
            dropout_prob=model_config.get("dropout_prob", 0.0),
            pretrained_vectors_path=pretrained_vectors_path,
        )

    return MODEL_TYPES[model_type](
        lookup_table,
        embedding_size=embedding_size,
        regularization_strength=model_config.get("regularization_strength", 0.0),
        pretrained_vectors_path=pretrained_vectors_path,
    )
