"""Tests for category classification and sentiment scorers."""

from unittest.mock import patch

import pytest

from newsdigest.utils.nlp import (
    CategoryClassifier,
    KeywordSentimentScorer,
    TextBlobSentimentScorer,
    make_sentiment_scorer,
)


class TestCategoryClassifier:
    @pytest.fixture
    def classifier(self):
        return CategoryClassifier()

    def test_empty_text_is_general(self, classifier):
        assert classifier.classify("") == "general"
        assert classifier.classify(None) == "general"
        assert classifier.classify("   ") == "general"

    def test_no_keyword_match_is_general(self, classifier):
        assert classifier.classify("Quiet weekend ahead for the region") == "general"

    def test_highest_score_wins(self, classifier):
        text = "Hospital doctors report new vaccine treatment for patients"
        assert classifier.classify(text) == "health"

    def test_matching_is_case_insensitive(self, classifier):
        assert classifier.classify("FOOTBALL CHAMPIONSHIP FINAL") == "sports"

    def test_each_keyword_counts_once(self, classifier):
        scores = classifier.score("music music music film")
        assert scores["entertainment"] == 2

    def test_tie_goes_to_first_category_in_table_order(self, classifier):
        # "startup" is a keyword of both technology and business
        assert classifier.classify("startup") == "technology"

    def test_custom_table_order_decides_ties(self):
        classifier = CategoryClassifier({"b": ["shared"], "a": ["shared"]})
        assert classifier.classify("a shared word") == "b"

    def test_default_table_order(self, classifier):
        assert list(classifier.category_keywords) == [
            "technology", "business", "sports", "health", "science", "entertainment"
        ]


class TestKeywordSentimentScorer:
    @pytest.fixture
    def scorer(self):
        return KeywordSentimentScorer()

    def test_positive(self, scorer):
        result = scorer.score("An amazing breakthrough with outstanding results")
        assert (result.label, result.score) == ("positive", 0.8)

    def test_negative(self, scorer):
        result = scorer.score("Severe crisis deepens after tragic failure")
        assert (result.label, result.score) == ("negative", 0.2)

    def test_balanced_is_neutral(self, scorer):
        assert scorer.score("Great success despite the crisis and setback").label == "neutral"

    def test_empty_is_neutral(self, scorer):
        assert scorer.score("").label == "neutral"


class TestTextBlobSentimentScorer:
    def _score_with_polarity(self, polarity, **kwargs):
        scorer = TextBlobSentimentScorer(**kwargs)
        with patch("newsdigest.utils.nlp.TextBlob") as blob:
            blob.return_value.sentiment.polarity = polarity
            return scorer.score("some text")

    def test_positive_polarity(self):
        result = self._score_with_polarity(0.5)
        assert result.label == "positive"
        assert result.score == pytest.approx(0.75)

    def test_negative_polarity(self):
        result = self._score_with_polarity(-0.6)
        assert result.label == "negative"
        assert result.score == pytest.approx(0.2)

    def test_mild_polarity_is_neutral(self):
        assert self._score_with_polarity(0.1).label == "neutral"

    def test_empty_text_skips_model(self):
        with patch("newsdigest.utils.nlp.TextBlob") as blob:
            result = TextBlobSentimentScorer().score("")
        blob.assert_not_called()
        assert result.label == "neutral"

    def test_real_textblob_scores_in_range(self):
        result = TextBlobSentimentScorer().score("This is a wonderful, excellent day")
        assert result.label == "positive"
        assert 0.0 <= result.score <= 1.0

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            TextBlobSentimentScorer(positive_threshold=0.3, negative_threshold=0.7)


class TestMakeSentimentScorer:
    def test_backends(self):
        assert isinstance(make_sentiment_scorer("textblob"), TextBlobSentimentScorer)
        assert isinstance(make_sentiment_scorer("keyword"), KeywordSentimentScorer)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            make_sentiment_scorer("bert")
