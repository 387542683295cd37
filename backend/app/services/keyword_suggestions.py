from __future__ import annotations

from backend.app.services.sanitize import sanitize_output

MAX_SUGGESTIONS = 50
MAX_SUGGESTION_LENGTH = 200
MAX_QUERY_ECHO_LENGTH = 100

KEYWORD_PREFIXES: tuple[str, ...] = (
    "how to", "best", "top 10", "tutorial", "review", "vs",
    "tips", "guide", "learn", "free", "easy", "quick",
    "complete", "beginner", "advanced", "step by step",
)
KEYWORD_SUFFIXES: tuple[str, ...] = (
    "tutorial", "guide", "tips", "tricks", "review", "explained",
    "for beginners", "step by step", "2024", "2025", "free",
    "easy", "quick", "complete guide", "how to", "best practices",
    "mistakes", "secrets", "hacks",
)
QUESTION_WORDS: tuple[str, ...] = ("what", "how", "why", "when", "where", "which")
KEYWORD_CATEGORIES: dict[str, tuple[str, ...]] = {
    "cooking": ("recipe", "ingredients", "kitchen", "food", "meal", "dish"),
    "tech": ("technology", "software", "app", "device", "gadget", "digital"),
    "fitness": ("workout", "exercise", "health", "training", "gym", "diet"),
    "music": ("song", "artist", "album", "lyrics", "cover", "instrumental"),
    "gaming": ("game", "gameplay", "walkthrough", "strategy", "tips", "cheats"),
    "education": ("learn", "study", "course", "lesson", "class", "school"),
    "business": ("marketing", "money", "entrepreneur", "startup", "success", "strategy"),
}
LONG_TAIL_MODIFIERS: tuple[str, ...] = (
    "for beginners", "step by step", "in 5 minutes", "at home",
    "without equipment", "on a budget", "for free", "mistakes to avoid",
    "pros and cons", "before and after",
)


def _add_prefixed(suggestions: dict[str, None], query: str, base_query: str) -> None:
    for prefix in KEYWORD_PREFIXES:
        if prefix not in base_query:
            suggestions.setdefault(f"{prefix} {query}", None)


def _add_suffixed(suggestions: dict[str, None], query: str, base_query: str) -> None:
    for suffix in KEYWORD_SUFFIXES:
        if suffix not in base_query:
            suggestions.setdefault(f"{query} {suffix}", None)


def _add_questions(suggestions: dict[str, None], query: str, base_query: str) -> None:
    for word in QUESTION_WORDS:
        if word not in base_query:
            suggestions.setdefault(f"{word} is {query}", None)
            suggestions.setdefault(f"{word} to {query}", None)


def _add_category_terms(suggestions: dict[str, None], query: str, base_query: str) -> None:
    for category, terms in KEYWORD_CATEGORIES.items():
        relevant = category in base_query or any(term in base_query for term in terms)
        if not relevant:
            continue
        for term in terms:
            if term not in base_query:
                suggestions.setdefault(f"{query} {term}", None)
                suggestions.setdefault(f"{term} {query}", None)


def _add_long_tail(suggestions: dict[str, None], query: str) -> None:
    for modifier in LONG_TAIL_MODIFIERS:
        suggestions.setdefault(f"{query} {modifier}", None)


def generate_keyword_suggestions(query: str) -> list[str]:
    """Expand a search query into at most 50 sanitized, de-duplicated suggestions.

    Order: the query itself, category terms, prefixes, suffixes, question
    templates, long-tail modifiers.
    """
    normalized_query = query.strip()
    if not normalized_query:
        return []
    base_query = normalized_query.lower()

    suggestions: dict[str, None] = {normalized_query: None}
    _add_category_terms(suggestions, normalized_query, base_query)
    _add_prefixed(suggestions, normalized_query, base_query)
    _add_suffixed(suggestions, normalized_query, base_query)
    _add_questions(suggestions, normalized_query, base_query)
    _add_long_tail(suggestions, normalized_query)

    sanitized: dict[str, None] = {}
    for suggestion in suggestions:
        cleaned = sanitize_output(suggestion, max_length=MAX_SUGGESTION_LENGTH).strip()
        if cleaned:
            sanitized.setdefault(cleaned, None)
        if len(sanitized) >= MAX_SUGGESTIONS:
            break
    return list(sanitized)


def sanitize_query_echo(query: str) -> str:
    return sanitize_output(query.strip(), max_length=MAX_QUERY_ECHO_LENGTH)
