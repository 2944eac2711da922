import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

from mimo_finance.fuzzy import (
    FuzzySettings,
    cluster_names,
    meets_threshold,
    name_key,
    normalize_name,
    representative_name,
    same_last_and_initial,
    similarity,
    title_case,
)

NO_FALLBACK = FuzzySettings(use_initial_fallback=False)


@pytest.mark.unit
def test_normalize_name():
    assert normalize_name("  José   AMORA ") == "jose amora"
    assert normalize_name("O'Neil-Smith Jr.") == "o neil smith jr"
    assert normalize_name(None) == ""
    assert normalize_name("123") == ""


@pytest.mark.unit
def test_name_key_and_title_case():
    assert name_key("José Amora") == "amora|j"
    assert name_key("Maria da Silva") == "silva|m"
    assert name_key("Cher") == "cher"
    assert name_key("  ") == ""
    assert title_case("jose amora") == "Jose Amora"


@pytest.mark.unit
def test_similarity_basics():
    assert similarity("José Amora", "Jose Amora") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("abc", "xyz") == 0.0


@pytest.mark.unit
def test_threshold_boundary_on_real_strings():
    seed = "x" * 50
    at_threshold = "x" * 43 + "y" * 7  # distance 7 over length 50
    below = "x" * 42 + "y" * 8
    assert meets_threshold(similarity(seed, at_threshold), 0.86)
    assert not meets_threshold(similarity(seed, below), 0.86)

    clusters = cluster_names([seed, at_threshold], name_of=lambda n: n, settings=NO_FALLBACK)
    assert len(clusters) == 1
    clusters = cluster_names([seed, below], name_of=lambda n: n, settings=NO_FALLBACK)
    assert len(clusters) == 2


@pytest.mark.unit
def test_threshold_boundary_exact_scores():
    assert meets_threshold(0.86, 0.86)
    assert not meets_threshold(0.85999, 0.86)

    with patch("mimo_finance.fuzzy.similarity", return_value=0.86):
        assert len(cluster_names(["Ann Lee", "Bob Ray"], name_of=lambda n: n, settings=NO_FALLBACK)) == 1
    with patch("mimo_finance.fuzzy.similarity", return_value=0.85999):
        assert len(cluster_names(["Ann Lee", "Bob Ray"], name_of=lambda n: n, settings=NO_FALLBACK)) == 2


@pytest.mark.unit
def test_accent_variants_cluster_with_plain_display_name():
    clusters = cluster_names(["José Amora", "Jose Amora"], name_of=lambda n: n)
    assert len(clusters) == 1
    assert clusters[0].display_name == "Jose Amora"
    assert clusters[0].count == 2


@pytest.mark.unit
def test_last_name_initial_fallback_is_tunable():
    names = ["Al Smith", "Albert Smith"]
    assert same_last_and_initial(*names)
    assert len(cluster_names(names, name_of=lambda n: n)) == 1
    assert len(cluster_names(names, name_of=lambda n: n, settings=NO_FALLBACK)) == 2


@pytest.mark.unit
def test_fallback_needs_two_tokens():
    assert not same_last_and_initial("Smith", "Sam Smith")


@pytest.mark.unit
def test_representative_name_majority_then_longer():
    assert representative_name(["jon smith", "John Smith", "Jon Smith"]) == "Jon Smith"
    assert representative_name(["Jon Smith", "John Smith"]) == "John Smith"
    assert representative_name([]) == ""


@pytest.mark.unit
def test_seed_order_follows_recency():
    a, b, c = "aaaaaaaaaa", "aaaaaaaaab", "aaaaaaaabb"
    when = {a: datetime(2024, 6, 3), b: datetime(2024, 6, 2), c: datetime(2024, 6, 1)}
    clusters = cluster_names([c, b, a], name_of=lambda n: n, recency_of=when.get, settings=NO_FALLBACK)
    assert [cl.members for cl in clusters] == [[a, b], [c]]

    when[b] = datetime(2024, 6, 9)
    clusters = cluster_names([c, b, a], name_of=lambda n: n, recency_of=when.get, settings=NO_FALLBACK)
    assert [cl.members for cl in clusters] == [[b, a, c]]


@pytest.mark.unit
def test_undated_records_sort_last_and_amounts_sum():
    records = [
        {"name": "Mary Stone", "at": None, "amount": Decimal("10")},
        {"name": "Mary Stone", "at": "2024-06-10", "amount": Decimal("5.50")},
        {"name": "Carla Dias", "at": "2024-06-11", "amount": Decimal("1")},
    ]
    clusters = cluster_names(
        records,
        name_of=lambda r: r["name"],
        recency_of=lambda r: r["at"],
        amount_of=lambda r: r["amount"],
    )
    assert [cl.display_name for cl in clusters] == ["Carla Dias", "Mary Stone"]
    assert clusters[1].total == Decimal("15.50")
    assert clusters[1].members[-1]["at"] is None
