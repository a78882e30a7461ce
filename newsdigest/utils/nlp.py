"""
Text analysis utilities for NewsDigest: keyword categorisation and
pluggable sentiment scoring.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from textblob import TextBlob

from newsdigest.config import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

GENERAL_CATEGORY = "general"
SENTIMENT_LABELS = ("positive", "negative", "neutral")


class CategoryClassifier:
    """
    Rule-based classifier that tags text with a coarse topic category.
    """
    def __init__(self, category_keywords: Optional[Mapping[str, List[str]]] = None):
        """
        Initialize the classifier.

        Args:
            category_keywords: Ordered mapping of category -> keywords. Iteration
                order decides ties. Defaults to the configured table.
        """
        table = category_keywords if category_keywords is not None else DEFAULT_CONFIG['categories']
        self.category_keywords: Dict[str, List[str]] = {
            category: [keyword.lower() for keyword in keywords]
            for category, keywords in table.items()
        }

    def score(self, text: str) -> Dict[str, int]:
        """
        Count how many of each category's keywords occur in the text.

        Args:
            text: The text to score

        Returns:
            Dict of category -> number of matching keywords, in table order
        """
        lower_text = (text or "").lower()
        return {
            category: sum(1 for keyword in keywords if keyword in lower_text)
            for category, keywords in self.category_keywords.items()
        }

    def classify(self, text: Optional[str]) -> str:
        """
        Classify text into one of the configured categories.

        Args:
            text: The text to classify

        Returns:
            The best-scoring category, or "general" when nothing matches
        """
        if not text or not text.strip():
            return GENERAL_CATEGORY

        best_category, best_score = GENERAL_CATEGORY, 0
        for category, score in self.score(text).items():
            # Strictly greater keeps the earliest category on ties
            if score > best_score:
                best_category, best_score = category, score

        logger.debug(f"Category: {best_category} (score: {best_score})")
        return best_category


@dataclass
class SentimentResult:
    """
    Sentiment label plus a score in [0, 1] where 1 is most positive.
    """
    label: str
    score: float


class SentimentScorer(ABC):
    """
    Strategy interface for sentiment scoring.
    """
    @abstractmethod
    def score(self, text: str) -> SentimentResult:
        """Score a piece of text."""


class KeywordSentimentScorer(SentimentScorer):
    """
    Fallback scorer that compares counts of positive and negative keywords.
    """
    POSITIVE_WORDS = [
        "great", "amazing", "wonderful", "excellent", "fantastic",
        "breakthrough", "success", "positive", "exciting", "innovative", "growth", "wins",
        "best", "outstanding", "revolutionary", "advancement"
    ]
    NEGATIVE_WORDS = [
        "terrible", "disaster", "crisis", "tragic", "disappointing",
        "setback", "concern", "failure", "decline", "death", "killed", "worst",
        "devastating", "critical", "severe"
    ]
    LABEL_SCORES = {"positive": 0.8, "negative": 0.2, "neutral": 0.5}

    def score(self, text: str) -> SentimentResult:
        if not text or not text.strip():
            return SentimentResult("neutral", 0.5)

        lower_text = text.lower()
        positive = sum(1 for word in self.POSITIVE_WORDS if word in lower_text)
        negative = sum(1 for word in self.NEGATIVE_WORDS if word in lower_text)

        if positive > negative:
            label = "positive"
        elif negative > positive:
            label = "negative"
        else:
            label = "neutral"
        return SentimentResult(label, self.LABEL_SCORES[label])


class TextBlobSentimentScorer(SentimentScorer):
    """
    Statistical scorer backed by TextBlob's polarity analyser.

    Polarity in [-1, 1] is rescaled to [0, 1]; scores above the positive
    threshold are positive, below the negative threshold negative.
    """
    def __init__(self, positive_threshold: float = 0.6, negative_threshold: float = 0.4):
        if not 0.0 <= negative_threshold <= positive_threshold <= 1.0:
            raise ValueError("thresholds must satisfy 0 <= negative <= positive <= 1")
        self.positive_threshold = positive_threshold
        self.negative_threshold = negative_threshold

    def score(self, text: str) -> SentimentResult:
        if not text or not text.strip():
            return SentimentResult("neutral", 0.5)

        polarity = TextBlob(text).sentiment.polarity
        value = min(1.0, max(0.0, (polarity + 1.0) / 2.0))

        if value > self.positive_threshold:
            label = "positive"
        elif value < self.negative_threshold:
            label = "negative"
        else:
            label = "neutral"
        return SentimentResult(label, round(value, 4))


def make_sentiment_scorer(backend: str = "textblob",
                          positive_threshold: float = 0.6,
                          negative_threshold: float = 0.4) -> SentimentScorer:
    """
    Select the sentiment scorer named by configuration.

    Args:
        backend: "textblob" for the statistical scorer, "keyword" for the fallback

    Returns:
        A SentimentScorer instance
    """
    backend = (backend or "").lower()
    if backend == "textblob":
        return TextBlobSentimentScorer(positive_threshold, negative_threshold)
    if backend == "keyword":
        return KeywordSentimentScorer()
    raise ValueError(f"Unknown sentiment backend: {backend!r}")
