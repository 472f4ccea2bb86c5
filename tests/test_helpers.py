"""
Tests for slug, machine name, path matching and form parsing helpers.
"""

from monkeyscms.helpers import machine_name, parse_form_data, path_matches, slugify


class TestSlugify:
    """Test URL slug generation."""

    def test_basic(self):
        """Test punctuation and spaces collapse to single hyphens."""
        assert slugify("Hello, World!") == "hello-world"

    def test_accents_are_transliterated(self):
        """Test accented characters are reduced to ASCII."""
        assert slugify("Crème Brûlée") == "creme-brulee"

    def test_fallback(self):
        """Test the fallback is used when nothing usable remains."""
        assert slugify("!!!", fallback="term") == "term"
        assert slugify("") == "item"


class TestMachineName:
    """Test machine name generation."""

    def test_prefix_added(self):
        """Test the prefix is forced onto the name."""
        assert machine_name("Body Text", prefix="field_") == "field_body_text"

    def test_prefix_not_doubled(self):
        """Test names already carrying the prefix are left alone."""
        assert machine_name("field_body", prefix="field_") == "field_body"

    def test_without_prefix(self):
        """Test plain machine names."""
        assert machine_name("Main Menu") == "main_menu"


class TestPathMatches:
    """Test visibility path patterns."""

    def test_exact_match(self):
        assert path_matches("/about", "/about")
        assert path_matches("about", "/about")

    def test_wildcard(self):
        assert path_matches("/blog/post-1", "/blog/*")
        assert not path_matches("/news/post-1", "/blog/*")

    def test_no_partial_match_without_wildcard(self):
        assert not path_matches("/about/team", "/about")


class TestParseFormData:
    """Test bracketed form field parsing."""

    def test_lists_and_dicts(self):
        """Test trailing [] collects lists and named keys nest dicts."""
        data = parse_form_data([("tags[]", "a"), ("tags[]", "b"), ("link[url]", "/x")])
        assert data == {"tags": ["a", "b"], "link": {"url": "/x"}}

    def test_indexed_items(self):
        """Test numeric keys nest as string keyed dicts."""
        data = parse_form_data([("items[0][url]", "/a"), ("items[1][url]", "/b")])
        assert data == {"items": {"0": {"url": "/a"}, "1": {"url": "/b"}}}

    def test_plain_fields(self):
        data = parse_form_data([("title", "Hello"), ("_token", "abc")])
        assert data == {"title": "Hello", "_token": "abc"}
