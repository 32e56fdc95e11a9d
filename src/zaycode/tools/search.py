"""Local document index with a pluggable relevance scorer.

``KeywordScorer`` is a lexical heuristic. An embedding-backed scorer can
replace it by implementing ``ScoringStrategy``; the index contract is unchanged.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Protocol

from loguru import logger
from rapidfuzz import fuzz, process

KEYWORD_PATTERN = re.compile(r"\b\w{4,}\b")
MAX_KEYWORDS = 50
SUMMARY_CHARS = 200
MIN_FUZZY_SCORE = 85


@dataclass
class IndexedDocument:
    path: str
    keywords: list[str]
    summary: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SearchHit:
    path: str
    score: float
    preview: str


class ScoringStrategy(Protocol):
    def score(self, query: str, document: IndexedDocument) -> float: ...


class KeywordScorer:
    """Path, keyword and summary term matching with fuzzy keyword fallback."""

    def __init__(self, *, path_weight: float = 5.0, keyword_weight: float = 2.0, summary_weight: float = 1.0) -> None:
        self.path_weight = path_weight
        self.keyword_weight = keyword_weight
        self.summary_weight = summary_weight

    def score(self, query: str, document: IndexedDocument) -> float:
        keywords = [keyword.lower() for keyword in document.keywords]
        path = document.path.lower()
        summary = document.summary.lower()
        total = 0.0
        for term in query.lower().split():
            if any(term in keyword for keyword in keywords) or self._fuzzy_hit(term, keywords):
                total += self.keyword_weight
            if term in path:
                total += self.path_weight
            if term in summary:
                total += self.summary_weight
        return total

    @staticmethod
    def _fuzzy_hit(term: str, keywords: list[str]) -> bool:
        if len(term) < 4 or not keywords:
            return False
        return process.extractOne(term, keywords, scorer=fuzz.ratio, score_cutoff=MIN_FUZZY_SCORE) is not None


def extract_keywords(content: str) -> list[str]:
    return list(dict.fromkeys(KEYWORD_PATTERN.findall(content)))[:MAX_KEYWORDS]


class SearchIndex:
    """JSON-persisted index of workspace documents."""

    def __init__(self, index_file: Path, scorer: ScoringStrategy | None = None) -> None:
        self.index_file = index_file
        self.scorer: ScoringStrategy = scorer or KeywordScorer()
        self._documents: dict[str, IndexedDocument] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._documents)

    def index(self, path: str, content: str) -> IndexedDocument:
        document = IndexedDocument(path=path, keywords=extract_keywords(content), summary=content[:SUMMARY_CHARS])
        self._documents[path] = document
        self._save()
        return document

    def search(self, query: str, *, limit: int = 5) -> list[SearchHit]:
        if not query.strip():
            return []
        hits = [
            SearchHit(path=document.path, score=score, preview=document.summary)
            for document in self._documents.values()
            if (score := self.scorer.score(query, document)) > 0
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    def _load(self) -> None:
        if not self.index_file.is_file():
            return
        try:
            payload = json.loads(self.index_file.read_text(encoding="utf-8"))
            documents = [IndexedDocument(**item) for item in payload.get("documents", [])]
        except (OSError, ValueError, TypeError, AttributeError):
            logger.warning("search.index.corrupt path={}", self.index_file)
            return
        self._documents = {document.path: document for document in documents}

    def _save(self) -> None:
        try:
            self.index_file.parent.mkdir(parents=True, exist_ok=True)
            payload = {"documents": [asdict(document) for document in self._documents.values()]}
            self.index_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError:
            logger.opt(exception=True).warning("search.index.save_failed path={}", self.index_file)
