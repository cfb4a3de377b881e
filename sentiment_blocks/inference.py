"""
Inference module for sentiment models.

Wraps a trained block model with tokenization and converts its score into a
user-friendly prediction.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from .model import Model
from .preprocessing import TextPreprocessor

logger = logging.getLogger("sentiment_blocks")


SENTIMENT_LABELS = {0: "negative", 1: "positive"}
CONFIDENCE_THRESHOLDS = {"high": 0.8, "medium": 0.6, "low": 0.0}


@dataclass
class PredictionResult:
    """Result of a sentiment prediction."""

    text: str
    sentiment: str
    confidence: float
    confidence_level: str
    probabilities: dict[str, float]
    inference_time_ms: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "text": self.text[:100] + "..." if len(self.text) > 100 else self.text,
            "sentiment": self.sentiment,
            "confidence": round(self.confidence, 4),
            "confidence_level": self.confidence_level,
            "probabilities": {
                k: round(v, 4) for k, v in self.probabilities.items()
            },
            "inference_time_ms": round(self.inference_time_ms, 2),
        }


def get_confidence_level(confidence: float) -> str:
    """
    Get confidence level string from confidence score.

    Args:
        confidence: Confidence score (0-1)

    Returns:
        Confidence level: 'high', 'medium', or 'low'
    """
    if confidence >= CONFIDENCE_THRESHOLDS["high"]:
        return "high"
    elif confidence >= CONFIDENCE_THRESHOLDS["medium"]:
        return "medium"
    else:
        return "low"


def convert_score_to_prediction(
    score: float,
    threshold: float = 0.5,
) -> tuple[int, float, dict[str, float]]:
    """
    Convert a positive-sentiment probability to a prediction.

    Args:
        score: Probability of positive sentiment
        threshold: Score at or above which the prediction is positive

    Returns:
        Tuple of (predicted_class, confidence, probabilities_dict)
    """
    probabilities = {"negative": 1.0 - score, "positive": score}
    predicted_class = 1 if score >= threshold else 0
    confidence = probabilities[SENTIMENT_LABELS[predicted_class]]
    return predicted_class, confidence, probabilities


def validate_prediction_input(text: Any) -> tuple[bool, str]:
    """
    Validate input for prediction.

    Args:
        text: Input text

    Returns:
        Tuple of (is_valid, error_message)
    """
    if text is None:
        return False, "Input text cannot be None"

    if not isinstance(text, str):
        return False, f"Input must be string, got {type(text).__name__}"

    text = text.strip()
    if len(text) == 0:
        return False, "Input text cannot be empty"

    if len(text) > 50000:
        return False, "Input text exceeds maximum length (50000 characters)"

    return True, ""


class SentimentPredictor:
    """
    High-level predictor for block-based sentiment models.

    Args:
        model: Trained sentiment model
        preprocessor: Tokenizer; a default TextPreprocessor otherwise
        threshold: Score at or above which text counts as positive
    """

    def __init__(
        self,
        model: Model,
        preprocessor: TextPreprocessor | None = None,
        threshold: float = 0.5,
    ):
        self.model = model
        self.preprocessor = preprocessor or TextPreprocessor()
        self.threshold = threshold

        self.model.eval()

    def predict(self, text: str) -> PredictionResult:
        """
        Make prediction for a single text.

        Args:
            text: Input text

        Returns:
            PredictionResult with sentiment and confidence

        Raises:
            ValueError: If input validation fails or the text has no words
        """
        is_valid, error = validate_prediction_input(text)
        if not is_valid:
            raise ValueError(error)

        start_time = time.time()

        tokens = self.preprocessor.tokenize(text)
        if not tokens:
            raise ValueError("Input text contains no words after preprocessing")

        self.model.eval()
        score = self.model.score(tokens)
        predicted_class, confidence, probabilities = convert_score_to_prediction(score, self.threshold)

        inference_time = (time.time() - start_time) * 1000

        return PredictionResult(
            text=text,
            sentiment=SENTIMENT_LABELS[predicted_class],
            confidence=confidence,
            confidence_level=get_confidence_level(confidence),
            probabilities=probabilities,
            inference_time_ms=inference_time,
        )

    def predict_batch(self, texts: list[str]) -> list[PredictionResult]:
        """
        Make predictions for multiple texts.

        Args:
            texts: List of input texts

        Returns:
            List of PredictionResults
        """
        for i, text in enumerate(texts):
            is_valid, error = validate_prediction_input(text)
            if not is_valid:
                raise ValueError(f"Invalid input at index {i}: {error}")

        return [self.predict(text) for text in texts]
