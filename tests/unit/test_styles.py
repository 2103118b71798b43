"""Unit tests for the article style registry."""

import pytest

from interview2article.services.styles import DEFAULT_STYLE, STYLE_REGISTRY, get_style, list_styles


class TestStyleRegistry:
    @pytest.mark.parametrize(
        "name,temperature",
        [
            ("default", 0.7),
            ("qa", 0.3),
            ("emotional", 0.9),
            ("tech", 0.3),
            ("literary", 0.8),
            ("business", 0.4),
        ],
    )
    def test_temperatures(self, name, temperature):
        assert get_style(name).temperature == temperature

    @pytest.mark.parametrize("name", ["unknown", "", None])
    def test_fallback_to_default(self, name):
        assert get_style(name).name == DEFAULT_STYLE

    def test_every_style_is_complete(self):
        for name, spec in STYLE_REGISTRY.items():
            assert spec.name == name
            assert spec.system_prompt
            assert spec.template_id
            assert spec.instruction

    def test_list_order_starts_with_default(self):
        assert list_styles()[0].name == DEFAULT_STYLE
