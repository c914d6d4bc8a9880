"""Tests for the tiered answer graph.

Covers:
  - History trimming
  - Knowledge and general nodes with mocked models
  - End-to-end routing: structured → knowledge → general
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from src.agent import (
    EMPTY_QUERY_REPLY,
    MAX_HISTORY_MESSAGES,
    CompletionError,
    InquiryState,
    _make_general_node,
    _make_knowledge_node,
    answer_inquiry,
    create_inquiry_agent,
    last_user_text,
    trim_history,
)
from src.core.settings import DEFAULT_SETTINGS

# ── Helpers ──────────────────────────────────────────────────────────


def _make_mock_llm(response_content: str):
    """Create a mock LLM that returns a fixed AIMessage."""
    mock_llm = MagicMock()
    mock_llm.invoke.return_value = AIMessage(content=response_content)
    return mock_llm


def _failing_llm(exc: Exception):
    mock_llm = MagicMock()
    mock_llm.invoke.side_effect = exc
    return mock_llm


def _user(text: str) -> list[dict]:
    return [{"role": "user", "content": text}]


# ── History ──────────────────────────────────────────────────────────


class TestTrimHistory:
    def test_keeps_last_messages(self):
        raw = [{"role": "user", "content": str(i)} for i in range(20)]
        trimmed = trim_history(raw)
        assert len(trimmed) == MAX_HISTORY_MESSAGES
        assert trimmed[-1].content == "19"

    def test_drops_other_roles_and_non_text_content(self):
        raw = [
            {"role": "system", "content": "ignore me"},
            {"role": "user", "content": ["not", "text"]},
            {"role": "assistant", "content": "こんにちは"},
            "garbage",
            {"role": "user", "content": "質問"},
        ]
        trimmed = trim_history(raw)
        assert [type(m) for m in trimmed] == [AIMessage, HumanMessage]

    def test_truncates_long_content(self):
        trimmed = trim_history([{"role": "user", "content": "あ" * 5000}])
        assert len(trimmed[0].content) == 1000

    def test_last_user_text(self):
        messages = [HumanMessage(content="一つ目"), AIMessage(content="返答"), HumanMessage(content="二つ目")]
        assert last_user_text(messages) == "二つ目"
        assert last_user_text([AIMessage(content="返答")]) == ""


# ── Nodes ────────────────────────────────────────────────────────────


class TestKnowledgeNode:
    """The fast model summarizes strong corpus hits; failures fall through."""

    @patch("src.agent._build_fast_llm")
    def test_strong_hit_is_summarized(self, mock_build, mock_store):
        mock_llm = _make_mock_llm('詳しくは <a href="https://example.jp">https://example.jp</a>')
        mock_build.return_value = mock_llm
        node = _make_knowledge_node(mock_store, DEFAULT_SETTINGS)

        result = node({"query": "インプラント治療"})

        assert result["response"]["source"] == "knowledge_ai"
        assert result["response"]["reply"] == "詳しくは https://example.jp"
        assert result["response"]["suggest_end"] is True
        system, human = mock_llm.invoke.call_args[0][0]
        assert isinstance(system, SystemMessage)
        assert "【資料1】インプラント説明会 / c1" in human.content

    @patch("src.agent._build_fast_llm")
    def test_weak_hit_skips_model(self, mock_build, mock_store):
        mock_llm = _make_mock_llm("unused")
        mock_build.return_value = mock_llm
        node = _make_knowledge_node(mock_store, DEFAULT_SETTINGS)

        result = node({"query": "駐車場"})

        assert "response" not in result
        mock_llm.invoke.assert_not_called()

    @patch("src.agent._build_fast_llm")
    def test_model_failure_falls_through(self, mock_build, mock_store):
        mock_build.return_value = _failing_llm(RuntimeError("overloaded"))
        node = _make_knowledge_node(mock_store, DEFAULT_SETTINGS)

        result = node({"query": "インプラント治療"})

        assert "response" not in result
        assert result["knowledge_hits"]

    @patch("src.agent._build_fast_llm")
    def test_empty_summary_falls_through(self, mock_build, mock_store):
        mock_build.return_value = _make_mock_llm("   ")
        node = _make_knowledge_node(mock_store, DEFAULT_SETTINGS)
        assert "response" not in node({"query": "インプラント治療"})


class TestGeneralNode:
    @patch("src.agent._build_llm")
    def test_answers_from_conversation(self, mock_build):
        mock_llm = _make_mock_llm("・受診をおすすめします")
        mock_build.return_value = mock_llm
        node = _make_general_node(DEFAULT_SETTINGS)

        state: InquiryState = {"messages": [HumanMessage(content="口内炎が治らない")], "faq_hits": []}
        result = node(state)

        assert result["response"]["source"] == "llm"
        assert result["response"]["reply"] == "・受診をおすすめします"
        sent = mock_llm.invoke.call_args[0][0]
        assert isinstance(sent[0], SystemMessage)
        assert DEFAULT_SETTINGS.booking_url in sent[0].content
        assert sent[1].content == "口内炎が治らない"

    @patch("src.agent._build_llm")
    def test_failure_raises_completion_error(self, mock_build):
        mock_build.return_value = _failing_llm(RuntimeError("LLM down"))
        node = _make_general_node(DEFAULT_SETTINGS)

        with pytest.raises(CompletionError):
            node({"messages": [HumanMessage(content="こんにちは")]})


# ── End-to-end ───────────────────────────────────────────────────────


@pytest.fixture
def models():
    """Patch both model builders; yields (main, fast) mocks."""
    main = _make_mock_llm("一般的な回答です")
    fast = _make_mock_llm("資料にもとづく回答です")
    with patch("src.agent._build_llm", return_value=main), \
            patch("src.agent._build_fast_llm", return_value=fast):
        yield main, fast


class TestInquiryGraph:
    def test_flow_start_answers_without_models(self, models, mock_store):
        main, fast = models
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, _user("入れ歯が割れました"))

        assert payload["source"] == "faq_flow_start"
        assert payload["faq_flow"] == {"key": "入れ歯が割れた", "step": 1, "slots": {}}
        assert payload["suggest_end"] is False
        main.invoke.assert_not_called()
        fast.invoke.assert_not_called()
        mock_store.fetch_corpus.assert_not_called()

    def test_flow_continues_with_caller_state(self, models, mock_store):
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)
        history = _user("入れ歯が割れました") + [
            {"role": "assistant", "content": "入れ歯を外すとお食事がしにくいですか？"},
            {"role": "user", "content": "はい"},
        ]

        payload = answer_inquiry(agent, history, {"key": "入れ歯が割れた", "step": 1, "slots": {}})

        assert payload["source"] == "faq_flow_decision"
        assert payload["faq_flow"] is None
        assert payload["suggest_end"] is True

    def test_single_shot_faq(self, models, mock_store):
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)
        payload = answer_inquiry(agent, _user("診療時間を教えてください"))
        assert payload["source"] == "faq"

    def test_knowledge_tier(self, models, mock_store):
        main, fast = models
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, _user("インプラント治療"))

        assert payload["source"] == "knowledge_ai"
        assert payload["reply"] == "資料にもとづく回答です"
        main.invoke.assert_not_called()

    def test_general_tier_when_nothing_matches(self, models, mock_store):
        main, fast = models
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, _user("駐車場はありますか"))

        assert payload["source"] == "llm"
        assert payload["reply"] == "一般的な回答です"
        fast.invoke.assert_not_called()

    def test_knowledge_failure_falls_back_to_general(self, models, mock_store):
        main, fast = models
        fast.invoke.side_effect = RuntimeError("timeout")
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, _user("インプラント治療"))

        assert payload["source"] == "llm"

    def test_general_failure_propagates(self, models, mock_store):
        main, _ = models
        main.invoke.side_effect = RuntimeError("LLM down")
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        with pytest.raises(CompletionError):
            answer_inquiry(agent, _user("駐車場はありますか"))

    def test_empty_utterance_gets_system_prompt(self, models, mock_store):
        agent = create_inquiry_agent(mock_store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, [])

        assert payload == {
            "reply": EMPTY_QUERY_REPLY,
            "source": "system",
            "faq_flow": None,
            "suggest_end": False,
            "reply_options": None,
        }
        mock_store.fetch_catalog.assert_not_called()

    def test_store_outage_still_answers(self, models):
        store = MagicMock()
        store.fetch_catalog.return_value = []
        store.fetch_corpus.return_value = []
        agent = create_inquiry_agent(store, DEFAULT_SETTINGS)

        payload = answer_inquiry(agent, _user("入れ歯が割れました"))

        assert payload["source"] == "llm"
