"""
NewsDigest - Personalized News Digest Engine

Fetches articles per user interest, filters out what each reader has already
seen, scores them by sentiment and adapts stored preferences to observed
reading behaviour.
"""

__version__ = "0.1.0"
