"""
Sentiment Blocks Package

Sentiment classifiers over word sequences built from small computation
graph blocks with hand-derived gradients.
"""
from .blocks import (
    Block,
    Dot,
    Dropout,
    MatrixParam,
    Mul,
    ScalarParam,
    ShapeError,
    Sigmoid,
    Sum,
    Tanh,
    UninitializedAccessError,
    VectorConstant,
    VectorMul,
    VectorParam,
)
from .gradient_check import GradientCheckError, check_gradient
from .inference import SentimentPredictor
from .lookup import FormatError, LoadError, LookupTable
from .loss import L2Regularization, Loss, LossSum, NegativeLogLikelihoodLoss
from .model import (
    Model,
    RecurrentNeuralNetworkModel,
    SumMultOfWordVectorsModel,
    SumOfWordVectorsModel,
    create_model_from_config,
)
from .preprocessing import TextPreprocessor

__all__ = [
    "Block",
    "Dot",
    "Dropout",
    "MatrixParam",
    "Mul",
    "ScalarParam",
    "ShapeError",
    "Sigmoid",
    "Sum",
    "Tanh",
    "UninitializedAccessError",
    "VectorConstant",
    "VectorMul",
    "VectorParam",
    "GradientCheckError",
    "check_gradient",
    "SentimentPredictor",
    "FormatError",
    "LoadError",
    "LookupTable",
    "L2Regularization",
    "Loss",
    "LossSum",
    "NegativeLogLikelihoodLoss",
    "Model",
    "RecurrentNeuralNetworkModel",
    "SumMultOfWordVectorsModel",
    "SumOfWordVectorsModel",
    "create_model_from_config",
    "TextPreprocessor",
]
