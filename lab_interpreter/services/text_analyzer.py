"""Text quality metrics for extracted document text."""

import math
import re
from collections import Counter
from typing import Any, Dict, List

from pydantic import BaseModel, Field


WORDS_PER_MINUTE = 200

STOP_WORDS = {
    # French
    "le", "la", "les", "un", "une", "des", "de", "du", "et", "ou", "mais",
    # English
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
}

POSITIVE_WORDS = {
    "bon", "bien", "excellent", "super", "génial", "parfait", "merveilleux",
    "good", "great", "amazing", "wonderful", "fantastic", "perfect",
}

NEGATIVE_WORDS = {
    "mauvais", "mal", "terrible", "horrible", "nul", "médiocre",
    "bad", "awful", "poor", "worst",
}


class Sentiment(BaseModel):
    score: int = 0
    sentiment: str = "neutral"   # positive, neutral, negative


class TextMetrics(BaseModel):
    """Full analysis of one text."""
    word_count: int = 0
    character_count: int = 0
    character_count_no_spaces: int = 0
    sentence_count: int = 0
    reading_time: int = 0
    complexity: int = 0
    sentiment: Sentiment = Field(default_factory=Sentiment)
    top_words: List[Dict[str, Any]] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


def _is_text(text: Any) -> bool:
    return isinstance(text, str) and bool(text)


def _normalized_words(text: str) -> List[str]:
    """Lowercased words with punctuation removed."""
    return re.sub(r"[^\w\s]", "", text.lower()).split()


class TextAnalyzer:
    """Word, sentence and keyword statistics.

    Every method accepts anything and returns zero/empty values for
    None, empty or non-string input.
    """

    @staticmethod
    def count_words(text: Any) -> int:
        if not _is_text(text):
            return 0
        return len(text.split())

    @staticmethod
    def count_characters(text: Any, include_spaces: bool = True) -> int:
        if not _is_text(text):
            return 0
        return len(text) if include_spaces else len(re.sub(r"\s", "", text))

    @staticmethod
    def count_sentences(text: Any) -> int:
        if not _is_text(text):
            return 0
        return len([s for s in re.split(r"[.!?]+", text) if s.strip()])

    @staticmethod
    def estimate_reading_time(text: Any) -> int:
        """Minutes at 200 words per minute, rounded up."""
        return math.ceil(TextAnalyzer.count_words(text) / WORDS_PER_MINUTE)

    @staticmethod
    def calculate_complexity(text: Any) -> int:
        """Score in [0, 100] from average word length and sentence length."""
        if not _is_text(text):
            return 0

        word_count = TextAnalyzer.count_words(text)
        sentence_count = TextAnalyzer.count_sentences(text)
        if word_count == 0 or sentence_count == 0:
            return 0

        avg_word_length = TextAnalyzer.count_characters(text, include_spaces=False) / word_count
        avg_sentence_length = word_count / sentence_count

        # Half-up rounding; the score is never negative
        return math.floor(min(100, avg_word_length * 5 + avg_sentence_length * 2) + 0.5)

    @staticmethod
    def analyze_sentiment(text: Any) -> Sentiment:
        if not _is_text(text):
            return Sentiment()

        score = 0
        for word in text.lower().split():
            if word in POSITIVE_WORDS:
                score += 1
            if word in NEGATIVE_WORDS:
                score -= 1

        label = "positive" if score > 0 else "negative" if score < 0 else "neutral"
        return Sentiment(score=score, sentiment=label)

    @staticmethod
    def get_most_frequent_words(text: Any, limit: int = 10) -> List[Dict[str, Any]]:
        if not _is_text(text):
            return []
        counts = Counter(word for word in _normalized_words(text) if len(word) > 2)
        return [{"word": word, "count": count} for word, count in counts.most_common(limit)]

    @staticmethod
    def extract_keywords(text: Any) -> List[str]:
        """Repeated words longer than 3 characters, most frequent first."""
        if not _is_text(text):
            return []
        counts = Counter(
            word for word in _normalized_words(text)
            if len(word) > 3 and word not in STOP_WORDS
        )
        return [word for word, count in counts.most_common() if count > 1]

    @staticmethod
    def analyze(text: Any) -> TextMetrics:
        return TextMetrics(
            word_count=TextAnalyzer.count_words(text),
            character_count=TextAnalyzer.count_characters(text, include_spaces=True),
            character_count_no_spaces=TextAnalyzer.count_characters(text, include_spaces=False),
            sentence_count=TextAnalyzer.count_sentences(text),
            reading_time=TextAnalyzer.estimate_reading_time(text),
            complexity=TextAnalyzer.calculate_complexity(text),
            sentiment=TextAnalyzer.analyze_sentiment(text),
            top_words=TextAnalyzer.get_most_frequent_words(text, 5),
            keywords=TextAnalyzer.extract_keywords(text)[:10],
        )

    @staticmethod
    def truncate(text: Any, max_length: int = 100, suffix: str = "...") -> str:
        if not _is_text(text):
            return ""
        if len(text) <= max_length:
            return text
        return text[:max_length - len(suffix)].strip() + suffix

    @staticmethod
    def remove_special_characters(text: Any) -> str:
        if not _is_text(text):
            return ""
        return re.sub(r"[^\w\s]", "", text)
