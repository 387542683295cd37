from __future__ import annotations

import re

MAX_TAGS = 20
MAX_TITLE_WORDS = 5

TAG_CATEGORIES: dict[str, tuple[str, ...]] = {
    "cricket": ("cricket", "match", "final", "highlights", "india", "pakistan", "asia cup"),
    "sports": ("sports", "game", "tournament", "championship", "league"),
    "music": ("music", "song", "audio", "sound", "beat"),
    "gaming": ("gaming", "game", "play", "player", "gameplay"),
    "tech": ("tech", "technology", "review", "unboxing", "gadget"),
    "tutorial": ("tutorial", "how to", "guide", "tips", "tricks"),
    "entertainment": ("entertainment", "funny", "comedy", "fun"),
    "news": ("news", "breaking", "update", "latest"),
    "travel": ("travel", "trip", "vacation", "destination"),
    "food": ("food", "recipe", "cooking", "kitchen"),
}

TITLE_STOPWORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "man", "new", "now", "old", "see", "two", "way", "who", "boy",
        "did", "its", "let", "put", "say", "she", "too", "use",
    }
)

_HASHTAG_PATTERN = re.compile(r"#(\w+)")
_WORD_SPLIT_PATTERN = re.compile(r"\W+")


def synthesize_tags(title: str, description: str) -> list[str]:
    """Derive up to 20 pseudo-tags from hashtags, category keywords and title words."""
    tags: dict[str, None] = {}
    content = f"{title} {description}".lower()

    for hashtag in _HASHTAG_PATTERN.findall(content):
        tags.setdefault(hashtag, None)

    for category, keywords in TAG_CATEGORIES.items():
        for keyword in keywords:
            if keyword in content:
                tags.setdefault(category, None)
                tags.setdefault(keyword, None)

    title_words = [
        word
        for word in _WORD_SPLIT_PATTERN.split(title.lower())
        if len(word) > 2 and word not in TITLE_STOPWORDS
    ]
    for word in title_words[:MAX_TITLE_WORDS]:
        tags.setdefault(word, None)

    return list(tags)[:MAX_TAGS]
