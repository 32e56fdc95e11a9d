from __future__ import annotations

from pathlib import Path

from zaycode.tools.search import IndexedDocument, KeywordScorer, SearchIndex, extract_keywords


def test_extract_keywords_deduplicates_and_skips_short_words() -> None:
    assert extract_keywords("def parse(tree): parse tree nodes and parse") == ["parse", "tree", "nodes"]


def test_scorer_weights_path_over_keywords_and_summary() -> None:
    scorer = KeywordScorer()
    document = IndexedDocument(path="src/parser.py", keywords=["tokens"], summary="reads tokens")

    assert scorer.score("parser", document) == 5.0
    assert scorer.score("tokens", document) == 3.0


def test_scorer_accepts_near_miss_spelling() -> None:
    document = IndexedDocument(path="a.txt", keywords=["tokeniser"], summary="handles input")

    assert KeywordScorer().score("tokenizer", document) == 2.0


def test_search_ranks_and_limits(tmp_path: Path) -> None:
    index = SearchIndex(tmp_path / "index.json")
    index.index("src/router.py", "route intents to models with weighted keywords")
    index.index("src/memory.py", "prune conversation turns when budget is exceeded")
    index.index("docs/routing.md", "notes about router weights")

    hits = index.search("router weights")

    assert [hit.path for hit in hits] == ["src/router.py", "docs/routing.md"]
    assert hits[0].score > hits[1].score
    assert len(index.search("router weights", limit=1)) == 1
    assert index.search("   ") == []


def test_index_persists_and_survives_corruption(tmp_path: Path) -> None:
    index_file = tmp_path / "index.json"
    SearchIndex(index_file).index("a.py", "alpha beta gamma")

    assert len(SearchIndex(index_file)) == 1

    index_file.write_text("[broken", encoding="utf-8")
    assert len(SearchIndex(index_file)) == 0
