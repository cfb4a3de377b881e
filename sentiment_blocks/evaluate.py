"""
Evaluation of block-based sentiment models on a labelled corpus.
"""

import logging

import numpy as np
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score, roc_auc_score
from tqdm import tqdm

from .model import Model
from .utils import AverageMeter

logger = logging.getLogger("sentiment_blocks")


def evaluate_model(
    model: Model,
    sentences: list[list[str]],
    labels: list[bool],
    threshold: float = 0.5,
    show_progress: bool = False,
) -> dict[str, float | None]:
    """
    Evaluate a model and compute metrics.

    Losses are only evaluated forward; no gradient reaches the parameters.
    The model runs in evaluation mode and gets its previous mode back on
    return.

    Args:
        model: Model to evaluate
        sentences: Tokenized sentences
        labels: Gold labels
        threshold: Score at or above which a sentence counts as positive
        show_progress: Whether to display a progress bar

    Returns:
        Dictionary with loss, accuracy, f1, precision, recall and roc_auc
        (roc_auc is None when only one class is present)
    """
    if len(sentences) != len(labels):
        raise ValueError(
            f"Number of sentences ({len(sentences)}) must match "
            f"number of labels ({len(labels)})"
        )
    if not sentences:
        raise ValueError("Cannot evaluate on an empty dataset")

    was_test_time = model.is_test_time
    model.eval()
    loss_meter = AverageMeter("loss")
    all_preds, all_labels, all_probs = [], [], []

    try:
        for sentence, label in tqdm(
            zip(sentences, labels),
            total=len(sentences),
            desc="Evaluating",
            leave=False,
            disable=not show_progress,
        ):
            loss_meter.update(model.loss(sentence, label).forward())
            prob = model.score(sentence)

            all_probs.append(prob)
            all_preds.append(int(prob >= threshold))
            all_labels.append(int(label))
    finally:
        model.is_test_time = was_test_time

    all_preds, all_labels, all_probs = map(np.array, [all_preds, all_labels, all_probs])

    roc_auc = None
    if len(np.unique(all_labels)) > 1:
        roc_auc = float(roc_auc_score(all_labels, all_probs))

    metrics = {
        "loss": loss_meter.avg,
        "accuracy": float(accuracy_score(all_labels, all_preds)),
        "f1": float(f1_score(all_labels, all_preds, average="weighted", zero_division=0)),
        "precision": float(precision_score(all_labels, all_preds, average="weighted", zero_division=0)),
        "recall": float(recall_score(all_labels, all_preds, average="weighted", zero_division=0)),
        "roc_auc": roc_auc,
    }

    logger.info(
        f"Evaluation - Loss: {metrics['loss']:.4f}, "
        f"Acc: {metrics['accuracy']:.4f}, "
        f"F1: {metrics['f1']:.4f}"
    )

    return metrics
