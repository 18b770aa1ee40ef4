"""Slug generation tests"""

import pytest

from pagesync.core.slugs import slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Hello World!", "hello-world"),
            ("Café à Paris", "cafe-a-paris"),
            ("  A -- B  ", "a-b"),
            ("snake_case_title", "snake-case-title"),
            ("Python 3.12: What's New?", "python-312-whats-new"),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_nothing_left(self):
        assert slugify("日本語") == ""
        assert slugify("!!!") == ""
        assert slugify("") == ""

    def test_truncates_without_trailing_separator(self):
        slug = slugify("word " * 100, max_len=12)
        assert len(slug) <= 12
        assert not slug.endswith("-")
