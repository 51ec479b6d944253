"""Tests for .mdc frontmatter parsing and rule summaries."""

import sys

mod = sys.modules["setup_cursor"]


class TestParseFrontmatter:
    def test_valid_frontmatter(self):
        text = "---\nalwaysApply: true\ndescription: My rule\n---\n# Body\nContent here."
        meta, body = mod.parse_frontmatter(text)
        assert meta["alwaysApply"] is True
        assert meta["description"] == "My rule"
        assert body == "# Body\nContent here."

    def test_no_frontmatter(self):
        text = "# Just a heading\nSome content."
        meta, body = mod.parse_frontmatter(text)
        assert meta == {}
        assert body == text

    def test_bool_coercion(self):
        text = "---\nalwaysApply: TRUE\nglobs: false\n---\nBody"
        meta, _ = mod.parse_frontmatter(text)
        assert meta["alwaysApply"] is True
        assert meta["globs"] is False

    def test_quoted_values(self):
        text = '---\ndescription: "A value: with colons"\n---\nBody'
        meta, _ = mod.parse_frontmatter(text)
        assert meta["description"] == "A value: with colons"

    def test_single_quoted_values(self):
        text = "---\ndescription: 'single quoted'\n---\nBody"
        meta, _ = mod.parse_frontmatter(text)
        assert meta["description"] == "single quoted"

    def test_empty_value(self):
        meta, _ = mod.parse_frontmatter("---\nglobs:\n---\nBody")
        assert meta["globs"] == ""

    def test_dashes_inside_value(self):
        text = "---\ndescription: no --- here\n---\nBody"
        meta, body = mod.parse_frontmatter(text)
        assert meta["description"] == "no --- here"
        assert body == "Body"

    def test_missing_closing_delimiter(self):
        text = "---\nalwaysApply: true\nNo closing delimiter"
        meta, body = mod.parse_frontmatter(text)
        assert meta == {}
        assert body == text


class TestRuleSummary:
    def test_reads_cursor_fields(self, tmp_path):
        rule = tmp_path / "style.mdc"
        rule.write_text('---\ndescription: "Style guide"\nglobs: *.py\nalwaysApply: false\n---\n# Style\n')
        assert mod.rule_summary(rule) == {
            "name": "style.mdc",
            "description": "Style guide",
            "alwaysApply": False,
            "globs": "*.py",
        }

    def test_defaults_without_frontmatter(self, tmp_path):
        rule = tmp_path / "plain.mdc"
        rule.write_text("# Plain\n")
        summary = mod.rule_summary(rule)
        assert summary["description"] == ""
        assert summary["alwaysApply"] is False

    def test_unreadable_file(self, tmp_path):
        rule = tmp_path / "binary.mdc"
        rule.write_bytes(b"\xff\xfe\x00bad")
        assert mod.rule_summary(rule)["name"] == "binary.mdc"
