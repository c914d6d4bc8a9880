"""Tests for judging patient replies against a step."""

from __future__ import annotations

import pytest

from src.core.decisions import LOOSE_TOOTH, choice_rules_for
from src.core.judge import judge, map_choice_text, parse_when
from src.core.models import FlowStep


def _step(expect: str, **attrs) -> FlowStep:
    return FlowStep("step1", "Q", {"expect": expect, **attrs})


class TestYesNo:
    @pytest.mark.parametrize("reply", ["はい", "うん", "YES", "y", "1", "ok", "大丈夫", "はい、そうです"])
    def test_yes(self, reply):
        assert judge(reply, _step("yesno")) == "yes"

    @pytest.mark.parametrize("reply", ["いいえ", "いや", "No", "n", "2", "違う", "いいえ、大丈夫です"])
    def test_no(self, reply):
        assert judge(reply, _step("yesno")) == "no"

    @pytest.mark.parametrize("reply", ["たぶん", "わからない", "", "   "])
    def test_rejected(self, reply):
        assert judge(reply, _step("yesno")) is None


class TestChoice:
    def test_digit_in_reply(self):
        assert judge("2番です", _step("choice", choice="12")) == "2"

    def test_digit_outside_choice_set_rejected(self):
        assert judge("3", _step("choice", choice="12")) is None

    def test_empty_choice_set_accepts_any_digit(self):
        assert judge("5", _step("choice")) == "5"

    def test_generic_two_way_wording(self):
        step = _step("choice", choice="12")
        assert judge("痛みがあります", step) == "1"
        assert judge("平気です", step) == "2"

    def test_three_way_wording(self):
        step = _step("choice", choice="123")
        assert judge("治療後からです", step) == "1"
        assert judge("いま治療中です", step) == "2"
        assert judge("わからないです", step) == "3"

    def test_topic_rules_take_precedence(self):
        rules = choice_rules_for(LOOSE_TOOTH)
        assert judge("差し歯です", _step("choice", choice="1234"), rules) == "4"
        assert judge("かぶせ物", _step("choice", choice="1234"), rules) == "3"

    def test_unmapped_wording_rejected(self):
        assert judge("えーと", _step("choice", choice="12")) is None

    def test_map_choice_text_without_match(self):
        assert map_choice_text("えーと", "12") == ""


class TestTooth:
    def test_strong_locator_accepted(self):
        assert judge("右下の奥歯", _step("tooth")) == "右下の奥歯"

    def test_tooth_number_accepted(self):
        assert judge("6番", _step("tooth")) == "6番"

    def test_no_locator_rejected(self):
        assert judge("ズキズキ痛い", _step("tooth")) is None

    def test_truncated_to_forty_characters(self):
        text = "右上" + "あ" * 60
        assert len(judge(text, _step("tooth"))) == 40


class TestWhen:
    @pytest.mark.parametrize(
        ("reply", "expected"),
        [
            ("今日から", "今日"),
            ("本日です", "今日"),
            ("一昨日から", "一昨日"),
            ("おとといです", "一昨日"),
            ("昨日の夜", "昨日"),
            ("3 日前から", "3日前"),
            ("2週間くらい", "2週間くらい"),
            ("先週", "先週"),
            ("さっき", "さっき"),
        ],
    )
    def test_relative_times(self, reply, expected):
        assert parse_when(reply) == expected

    def test_unrecognized_rejected(self):
        assert judge("いつだったか", _step("when")) is None


class TestFree:
    def test_any_text_accepted(self):
        assert judge(" なんでも ", _step("free")) == "なんでも"

    def test_unknown_expect_treated_as_free(self):
        assert judge("text", _step("date")) == "text"

    def test_empty_rejected(self):
        assert judge("", _step("free")) is None
