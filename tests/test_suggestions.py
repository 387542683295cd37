from __future__ import annotations

from backend.app.services.keyword_suggestions import (
    MAX_SUGGESTIONS,
    generate_keyword_suggestions,
    sanitize_query_echo,
)
from backend.app.services.tag_synthesizer import MAX_TAGS, synthesize_tags


def test_synthesize_tags_combines_hashtags_categories_and_title_words() -> None:
    tags = synthesize_tags("Amazing Cricket Final Highlights #Asia Cup", "")

    assert tags[0] == "asia"
    assert {"cricket", "final", "highlights", "amazing"} <= set(tags)
    assert len(tags) == len(set(tags))


def test_synthesize_tags_skips_stopwords_and_short_words() -> None:
    tags = synthesize_tags("How the new AI app works", "")

    assert "how" not in tags
    assert "the" not in tags
    assert "ai" not in tags
    assert tags == ["app", "works"]


def test_synthesize_tags_limits_title_words_and_total() -> None:
    title = "alpha bravo charlie delta echo foxtrot golf"
    assert synthesize_tags(title, "") == ["alpha", "bravo", "charlie", "delta", "echo"]

    description = " ".join(f"#tag{index}" for index in range(40))
    tags = synthesize_tags("plain", description)
    assert len(tags) == MAX_TAGS
    assert tags[:3] == ["tag0", "tag1", "tag2"]


def test_synthesize_tags_category_match_is_substring_based() -> None:
    tags = synthesize_tags("Weekend", "a quick recipe from my kitchen")
    assert tags[:4] == ["food", "recipe", "kitchen", "weekend"]


def test_generate_keyword_suggestions_for_category_query() -> None:
    suggestions = generate_keyword_suggestions("cooking")

    assert suggestions[0] == "cooking"
    assert "cooking recipe" in suggestions
    assert "recipe cooking" in suggestions
    assert "how to cooking" in suggestions
    assert len(suggestions) <= MAX_SUGGESTIONS
    assert len(suggestions) == len(set(suggestions))


def test_generate_keyword_suggestions_skips_present_affixes() -> None:
    suggestions = generate_keyword_suggestions("best guitar tips")

    assert "best best guitar tips" not in suggestions
    assert "best guitar tips tips" not in suggestions
    assert "how to best guitar tips" in suggestions
    assert "what is best guitar tips" in suggestions


def test_generate_keyword_suggestions_is_deterministic_and_capped() -> None:
    first = generate_keyword_suggestions("python")
    second = generate_keyword_suggestions("python")

    assert first == second
    assert len(first) == MAX_SUGGESTIONS
    assert first[-1] != ""


def test_generate_keyword_suggestions_sanitizes_output() -> None:
    suggestions = generate_keyword_suggestions('<script>"x" & \'y\'' + "z" * 300)

    assert suggestions
    for suggestion in suggestions:
        assert not any(character in suggestion for character in "<>\"'&")
        assert len(suggestion) <= 200


def test_generate_keyword_suggestions_empty_query() -> None:
    assert generate_keyword_suggestions("   ") == []


def test_sanitize_query_echo() -> None:
    assert sanitize_query_echo("  <b>cats</b> & dogs ") == "bcats/b  dogs"
    assert len(sanitize_query_echo("q" * 500)) == 100
