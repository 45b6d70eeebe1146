"""Tests for the font registry and icon prompt building."""
import base64
import json
import random

import pytest

from fonts import (
    DEFAULT_FONTS,
    STYLE_PROMPTS,
    FontEntry,
    FontRegistry,
    FontStyle,
    build_icon_prompt,
    default_font_registry,
    load_font_registry,
)


class FirstChoice:
    """Deterministic random source that always picks the first candidate."""

    def choice(self, seq):
        return seq[0]


class LastChoice:
    def choice(self, seq):
        return seq[-1]


class TestFontStyle:

    def test_parse_is_case_insensitive(self):
        assert FontStyle.parse(" Playful ") is FontStyle.PLAYFUL

    def test_parse_accepts_members(self):
        assert FontStyle.parse(FontStyle.CALM) is FontStyle.CALM

    def test_unknown_style_raises(self):
        with pytest.raises(ValueError, match="Unknown font style"):
            FontStyle.parse("grumpy")

    def test_every_style_has_prompt(self):
        assert set(STYLE_PROMPTS) == set(FontStyle)


class TestBuildIconPrompt:

    def test_prompt_contains_description_and_style(self):
        prompt = build_icon_prompt("minimalistic flower", "elegant")
        assert prompt == (
            "Generate a minimalistic flower icon with black strokes and a elegant style. "
            "The elegant style has thinner strokes and a more minimal design."
        )


class TestFontRegistry:

    def test_returns_registered_font(self, font_file):
        registry = FontRegistry(
            fonts_by_style={"playful": [{"name": "Fredoka", "path": str(font_file)}]},
            fallback_style="playful",
        )
        font = registry.get_font("playful", rng=FirstChoice())

        assert font.name == "Fredoka"
        assert font.base64_payload == base64.b64encode(font_file.read_bytes()).decode("ascii")

    def test_empty_style_falls_back(self, font_file):
        registry = FontRegistry(
            fonts_by_style={
                FontStyle.CALM: [FontEntry(name="Quicksand", path=str(font_file))],
                FontStyle.ENERGETIC: [],
            },
        )
        font = registry.get_font(FontStyle.ENERGETIC, rng=FirstChoice())
        assert font.name == "Quicksand"

    def test_unregistered_style_falls_back(self, font_file):
        registry = FontRegistry(fonts_by_style={"calm": [{"name": "Quicksand", "path": str(font_file)}]})
        assert registry.candidates("professional") == [FontEntry("Quicksand", str(font_file))]

    def test_placeholder_entries_are_dropped(self, font_file):
        registry = FontRegistry(fonts_by_style={
            "calm": [{"name": "Quicksand", "path": str(font_file)}],
            "professional": [{"name": "", "path": ""}],
        })
        assert registry.fonts_by_style[FontStyle.PROFESSIONAL] == []
        assert registry.candidates("professional")[0].name == "Quicksand"

    def test_empty_fallback_raises(self):
        registry = FontRegistry(fonts_by_style={"calm": []})
        with pytest.raises(LookupError):
            registry.candidates("playful")

    def test_random_source_is_injected(self, tmp_path):
        for name in ("A", "B", "C"):
            (tmp_path / f"{name}.ttf").write_bytes(name.encode())
        registry = FontRegistry(
            fonts_by_style={"calm": [{"name": n, "path": f"{n}.ttf"} for n in ("A", "B", "C")]},
            base_dir=str(tmp_path),
        )

        assert registry.get_font("calm", rng=FirstChoice()).name == "A"
        assert registry.get_font("calm", rng=LastChoice()).name == "C"

    def test_seeded_random_is_repeatable(self, tmp_path):
        for name in ("A", "B", "C", "D"):
            (tmp_path / f"{name}.ttf").write_bytes(name.encode())
        registry = FontRegistry(
            fonts_by_style={"calm": [{"name": n, "path": f"{n}.ttf"} for n in ("A", "B", "C", "D")]},
            base_dir=str(tmp_path),
        )
        first = [registry.get_font("calm", rng=random.Random(7)).name for _ in range(5)]
        second = [registry.get_font("calm", rng=random.Random(7)).name for _ in range(5)]
        assert first == second

    def test_relative_paths_use_base_dir(self, tmp_path):
        registry = FontRegistry(fonts_by_style={}, base_dir=str(tmp_path))
        assert registry.resolve_path(FontEntry("X", "calm/X.ttf")) == str(tmp_path / "calm" / "X.ttf")

    def test_missing_font_file_raises(self, tmp_path):
        registry = FontRegistry(
            fonts_by_style={"calm": [{"name": "Gone", "path": "gone.ttf"}]},
            base_dir=str(tmp_path),
        )
        with pytest.raises(FileNotFoundError):
            registry.get_font("calm", rng=FirstChoice())


class TestLoadFontRegistry:

    def test_json_config(self, tmp_path, font_file):
        config = tmp_path / "registry.json"
        config.write_text(json.dumps({
            "elegant": [{"name": "Playfair Display", "path": font_file.name}],
            "calm": [{"name": "Nunito", "path": font_file.name}],
        }))
        registry = load_font_registry(str(config))

        assert registry.base_dir == str(tmp_path)
        assert registry.get_font("elegant", rng=FirstChoice()).name == "Playfair Display"
        assert registry.get_font("energetic", rng=FirstChoice()).name == "Nunito"

    def test_default_registry_falls_back_to_calm(self):
        registry = default_font_registry()
        assert registry.fallback_style is FontStyle.CALM
        assert registry.candidates("professional") == registry.candidates("calm")
        assert len(registry.candidates("calm")) == len(DEFAULT_FONTS[FontStyle.CALM])
