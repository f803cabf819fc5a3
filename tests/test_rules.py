from __future__ import annotations

import re
import unittest

from textgoggles.context import PipelineContext
from textgoggles.errors import RuleCompileError
from textgoggles.mappings import DEFAULT_RULES, NICKNAMES, default_source
from textgoggles.processor import TextProcessor
from textgoggles.rules import PatternRule, PatternSource


class TestPatternRule(unittest.TestCase):
    def test_invalid_pattern_raises_rule_compile_error(self) -> None:
        with self.assertRaises(RuleCompileError) as ctx:
            PatternRule("broken", "(unclosed", "x")
        assert ctx.exception.rule_name == "broken"
        assert "broken" in str(ctx.exception)

    def test_empty_pattern_is_rejected(self) -> None:
        with self.assertRaises(RuleCompileError):
            PatternRule("empty", "", "x")

    def test_replacement_must_be_text_or_callable(self) -> None:
        with self.assertRaises(RuleCompileError):
            PatternRule("bad", "x", 42)

    def test_literal_rule_escapes_and_bounds_words(self) -> None:
        rule = PatternRule.literal("a.b", "X")
        assert rule.pattern.search("axb") is None
        assert rule.pattern.search("a.b") is not None
        jeb = PatternRule.literal("Jeb", "Low Energy Jeb")
        assert jeb.pattern.search("Jebediah") is None
        assert jeb.pattern.search("ask jeb!") is not None
        assert jeb.hints == ("jeb",)
        assert jeb.name == "Jeb"

    def test_stdlib_pattern_is_accepted(self) -> None:
        rule = PatternRule("std", re.compile("foo", re.IGNORECASE), "bar")
        assert rule.pattern.search("FOO") is not None

    def test_rules_are_immutable(self) -> None:
        rule = PatternRule.literal("Trump", "X")
        with self.assertRaises(AttributeError):
            rule.replacement = "Y"

    def test_hints_are_lowercased(self) -> None:
        rule = PatternRule("r", r"Ted\s+Cruz", "Lyin' Ted", hints=["CRUZ", ""])
        assert rule.hints == ("cruz",)
        assert PatternRule("r", "x", "y", hints=[""]).hints is None


class TestPatternSource(unittest.TestCase):
    def test_order_is_preserved_and_disabled_rules_dropped(self) -> None:
        a = PatternRule.literal("a", "1")
        b = PatternRule.literal("b", "2", enabled=False)
        c = PatternRule.literal("c", "3")
        source = PatternSource([a, b, c])
        assert list(source) == [a, c]
        assert len(source) == 2
        assert source[1] is c

    def test_version_is_stable_and_content_sensitive(self) -> None:
        one = PatternSource([PatternRule.literal("a", "1")])
        same = PatternSource([PatternRule.literal("a", "1")])
        other = PatternSource([PatternRule.literal("a", "2")])
        reordered = PatternSource([PatternRule.literal("b", "2"), PatternRule.literal("a", "1")])
        plain = PatternSource([PatternRule.literal("a", "1"), PatternRule.literal("b", "2")])
        assert one.version == same.version
        assert one.version != other.version
        assert reordered.version != plain.version

    def test_rejects_non_rules(self) -> None:
        with self.assertRaises(TypeError):
            PatternSource(["not a rule"])

    def test_from_pairs(self) -> None:
        source = PatternSource.from_pairs({"Trump": "The Orange One", "CNN": "Fake News CNN"})
        assert [r.name for r in source] == ["Trump", "CNN"]
        assert source.has_prefilter is True

    def test_prefilter_is_case_insensitive(self) -> None:
        source = PatternSource.from_pairs([("Trump", "X")])
        assert source.is_likely_match("TRUMP rally")
        assert not source.is_likely_match("a rally")
        assert not source.is_likely_match("")
        assert not PatternSource([]).is_likely_match("anything")


class TestDefaultMappings(unittest.TestCase):
    def setUp(self) -> None:
        source = default_source()
        self.processor = TextProcessor(source, PipelineContext(source))

    def test_table_order(self) -> None:
        names = [rule.name for rule in DEFAULT_RULES]
        assert names[:3] == ["isis", "hillary", "cruz"]
        assert names[-1] == "covidalt"
        assert len(names) == len(NICKNAMES)
        assert len(set(names)) == len(names)

    def test_every_rule_has_hints(self) -> None:
        assert all(rule.hints for rule in DEFAULT_RULES)
        assert default_source().has_prefilter is True

    def test_default_source_is_shared(self) -> None:
        assert default_source() is default_source()

    def test_hillary(self) -> None:
        assert self.processor.process("Hillary Clinton spoke.").text == "Crooked Hillary spoke."
        assert self.processor.process("Mrs. Clinton spoke.").text == "Crooked Hillary spoke."

    def test_network_variants(self) -> None:
        result = self.processor.process("NBC News and NBC")
        assert result.text == "Fake News NBC News and Fake News NBC"
        assert self.processor.process("ABC News").text == "Fake News ABC News"

    def test_whitespace_variants(self) -> None:
        assert self.processor.process("Joe  Biden").text == "Sleepy Joe"
        assert self.processor.process("the New York Times").text == "the Failing New York Times"

    def test_case_insensitive(self) -> None:
        assert self.processor.process("I like COFFEE").text == "I like covfefe"

    def test_hints_cover_samples(self) -> None:
        samples = {
            "isis": "ISIL",
            "assad": "Bashar Hafez al-Assad",
            "kimjongun": "Kim Jong Un",
            "covid": "COVID-19",
            "covidalt": "SARS-CoV-2",
            "washingtonpost": "WaPo",
            "huffpo": "Huffington Post",
        }
        rules = {rule.name: rule for rule in DEFAULT_RULES}
        for name, text in samples.items():
            rule = rules[name]
            match = rule.pattern.search(text)
            assert match is not None, name
            assert any(h in match.group(0).lower() for h in rule.hints), name


if __name__ == "__main__":
    unittest.main()
