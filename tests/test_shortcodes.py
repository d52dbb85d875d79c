"""
Tests for shortcode processing.
"""

import pytest

from wp_orm.exceptions import ShortcodeError
from wp_orm.shortcodes import ShortcodeRegistry, parse_attributes


@pytest.fixture
def registry():
    return ShortcodeRegistry(max_depth=10)


class TestParseAttributes:
    """Tests for attribute parsing."""

    def test_quoted_and_bare_values(self):
        named, positional = parse_attributes(
            """ id="12" size='large' Columns=3 "quoted" bare"""
        )
        assert named == {"id": "12", "size": "large", "columns": "3"}
        assert positional == ("quoted", "bare")

    def test_empty(self):
        assert parse_attributes("") == ({}, ())

    def test_non_breaking_space_separates(self):
        named, _ = parse_attributes('a="1"\u00a0b="2"')
        assert named == {"a": "1", "b": "2"}


class TestShortcodeRegistry:
    """Tests for ShortcodeRegistry."""

    def test_self_closing_replacement(self, registry):
        registry.register("year", lambda sc: "2024")
        assert registry.process("Copyright [year]") == "Copyright 2024"
        assert registry.process("Copyright [year /]") == "Copyright 2024"

    def test_handler_receives_parameters(self, registry):
        seen = []

        def gallery(shortcode):
            seen.append(shortcode)
            return f"<gallery {shortcode.get('ids')}>"

        registry.register("gallery", gallery)
        result = registry.process('Look: [gallery ids="1,2" link=file]')

        assert result == "Look: <gallery 1,2>"
        assert seen[0].name == "gallery"
        assert seen[0].parameters == {"ids": "1,2", "link": "file"}
        assert seen[0].content is None
        assert seen[0].text == '[gallery ids="1,2" link=file]'

    def test_enclosing_shortcode(self, registry):
        registry.register("caption", lambda sc: f"<figcaption>{sc.content}</figcaption>")
        assert (
            registry.process("[caption align=left]A cat[/caption]")
            == "<figcaption>A cat</figcaption>"
        )

    def test_none_removes_span(self, registry):
        registry.register("ad", lambda sc: None)
        assert registry.process("before [ad]promo[/ad] after") == "before  after"

    def test_unregistered_brackets_untouched(self, registry):
        registry.register("year", lambda sc: "2024")
        text = "[note]keep[/note] [1] [year] [years]"
        assert registry.process(text) == "[note]keep[/note] [1] 2024 [years]"

    def test_nested_content_processed_first(self, registry):
        calls = []

        def outer(sc):
            calls.append(("outer", sc.content))
            return f"<div>{sc.content}</div>"

        def inner(sc):
            calls.append(("inner", sc.content))
            return sc.content.upper()

        registry.register("outer", outer)
        registry.register("inner", inner)

        result = registry.process("[outer]a [inner]b[/inner] c[/outer]")

        assert result == "<div>a B c</div>"
        assert calls == [("inner", "b"), ("outer", "a B c")]

    def test_max_depth_stops_expansion(self):
        registry = ShortcodeRegistry(max_depth=1)
        registry.register("outer", lambda sc: f"<{sc.content}>")
        registry.register("inner", lambda sc: "X")

        assert registry.process("[outer][inner][/outer]") == "<[inner]>"

    def test_escaped_shortcode_renders_literally(self, registry):
        registry.register("year", lambda sc: "2024")
        assert registry.process("Type [[year]] to get [year]") == "Type [year] to get 2024"

    def test_longer_name_not_confused_with_prefix(self, registry):
        registry.register("gallery", lambda sc: "G")
        registry.register("gallery-item", lambda sc: "I")
        assert registry.process("[gallery-item] [gallery]") == "I G"

    def test_empty_and_none_text(self, registry):
        registry.register("year", lambda sc: "2024")
        assert registry.process("") == ""
        assert registry.process(None) is None

    def test_no_handlers_returns_text(self, registry):
        assert registry.process("[year]") == "[year]"

    def test_remove_and_clear(self, registry):
        registry.register("a", lambda sc: "A")
        registry.register("b", lambda sc: "B")

        registry.remove("a")
        assert not registry.has("a")
        assert registry.process("[a][b]") == "[a]B"

        registry.clear()
        assert len(registry) == 0
        assert registry.process("[a][b]") == "[a][b]"

    def test_invalid_names_rejected(self, registry):
        for name in ("", "bad name", "a]b", "x/y"):
            with pytest.raises(ShortcodeError):
                registry.register(name, lambda sc: "")

    def test_non_callable_handler_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("year", "2024")

    def test_default_depth_from_settings(self):
        from wp_orm.config import get_settings

        assert ShortcodeRegistry().max_depth == get_settings().shortcode_max_depth

    def test_strip_is_process(self, registry):
        registry.register("year", lambda sc: "2024")
        assert registry.strip("[year]") == "2024"
