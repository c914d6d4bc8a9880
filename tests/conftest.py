"""Shared test fixtures for the clinic inquiry test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest

from src.core.models import CatalogEntry, KnowledgeChunk


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("STORE_TOKEN", "test-store-token-456")


HOURS = CatalogEntry(
    question="診療時間",
    answer="平日 9:00〜18:00 です。\\n土曜は午前のみです。",
    keywords="診療時間,何時まで",
)

DENTURE_BROKEN = CatalogEntry(
    question="入れ歯が割れた",
    answer=(
        "[[step1 expect=yesno slot=eat]]入れ歯を外すとお食事がしにくいですか？\n"
        "[[final]]ご予約ください。"
    ),
    keywords="割れ",
)

LOOSE_TOOTH = CatalogEntry(
    question="歯がグラグラする",
    answer=(
        "[[step1 expect=choice slot=type choice=1234]]グラグラしているのはどれですか？\n"
        "1）自分の歯\n2）詰め物\n3）かぶせ物\n4）差し歯\n"
        "[[step2 expect=yesno slot=pain]]痛みはありますか？\n"
        "[[step3 expect=yesno slot=throb]]ズキズキしますか？\n"
        "[[final]]ご予約をお取りください。"
    ),
    keywords="グラグラ,ぐらぐら",
)

DISABLED = CatalogEntry(
    question="休診日",
    answer="日曜・祝日です。",
    keywords="休診",
    enabled=False,
)


@pytest.fixture
def catalog() -> list[CatalogEntry]:
    return [HOURS, DENTURE_BROKEN, LOOSE_TOOTH, DISABLED]


@pytest.fixture
def corpus() -> list[KnowledgeChunk]:
    return [
        KnowledgeChunk("インプラント説明会", "c1", "インプラント治療は保険適用外です。費用は相談ください。"),
        KnowledgeChunk("歯周病", "c2", "歯周病治療にはスケーリングとSRPがあります。"),
        KnowledgeChunk("", "c3", "Powered by Notta"),
    ]


@pytest.fixture
def mock_store(catalog, corpus):
    """A StoreClient stand-in returning the sample catalog and corpus."""
    store = MagicMock()
    store.fetch_catalog.return_value = catalog
    store.fetch_corpus.return_value = corpus
    return store


@pytest.fixture
def mock_http_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make
