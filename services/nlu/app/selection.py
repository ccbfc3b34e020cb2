"""Intent selection from ranked classifier predictions"""

import math
from typing import Sequence

import numpy as np

from .models import Prediction

NONE_INTENT = "none"
NONE_PREDICTION = Prediction(name=NONE_INTENT, confidence=1.0)


def find_most_confident_prediction(
    predictions: Sequence[Prediction],
    fixed_threshold: float,
    std: float = 3,
) -> Prediction:
    """Pick the first prediction above a fixed threshold, else a statistical outlier.

    When nothing reaches `fixed_threshold`, a prediction is selected if its
    confidence is at least `std` standard errors above the mean confidence.
    Input order is kept: the first qualifying prediction wins.

    Args:
        predictions: Predictions, ranked by the classifier
        fixed_threshold: Confidence that selects a prediction outright
        std: Number of standard errors away from the mean, normally between 2 and 5

    Returns:
        The selected prediction, or the "none" prediction
    """
    if not predictions:
        return NONE_PREDICTION

    best = next((p for p in predictions if p.confidence >= fixed_threshold), None)
    if best:
        return best

    confidences = np.array([p.confidence for p in predictions], dtype=float)
    mean = float(np.mean(confidences))
    std_err = float(np.std(confidences)) / math.sqrt(len(confidences))

    dominant = next((p for p in predictions if p.confidence >= std_err * std + mean), None)
    return dominant or NONE_PREDICTION
