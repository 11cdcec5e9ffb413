from .base import ExternalSource, score_confidence
from .newsapi import NewsApiSource
from .wikipedia import WikipediaSource

__all__ = ["ExternalSource", "NewsApiSource", "WikipediaSource", "score_confidence"]
