"""Unit tests for mixed-script word counting."""

import pytest

from interview2article.services.word_count import count_words, estimate_read_time, strip_markdown


class TestCountWords:
    """Tests for count_words."""

    def test_latin(self):
        assert count_words("Hello brave new world") == 4

    def test_cjk_ideographs_count_individually(self):
        assert count_words("你好世界") == 4

    def test_mixed_scripts(self):
        """Each ideograph plus each Latin token."""
        assert count_words("我爱 Python 编程") == 5

    def test_cjk_punctuation_ignored(self):
        assert count_words("你好，世界。") == 4

    def test_punctuation_tokens_ignored(self):
        assert count_words("Hello , world —") == 2

    def test_markdown_markers_stripped(self):
        text = "## Title\n\n**bold** text [link](https://example.com/path)\n\n- item"
        assert count_words(text) == 5

    def test_code_fence_markers_stripped(self):
        assert count_words("```python\nprint\n```") == 1

    @pytest.mark.parametrize("text", [None, "", "   \n  ", "***"])
    def test_empty(self, text):
        assert count_words(text) == 0


class TestStripMarkdown:
    def test_keeps_link_and_image_text(self):
        assert strip_markdown("![alt](a.png) and [here](b)").strip() == "alt and here"

    def test_removes_blockquote_marker(self):
        assert strip_markdown("> quoted").strip() == "quoted"


class TestEstimateReadTime:
    @pytest.mark.parametrize(
        "words,minutes",
        [(0, 0), (1, 1), (200, 1), (201, 2), (1000, 5)],
    )
    def test_rounds_up(self, words, minutes):
        assert estimate_read_time(words) == minutes
