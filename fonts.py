"""Font registry used to style the brand name.

Fonts are grouped by style category. A category without fonts falls back to
the registry's fallback category, which must have at least one font.
"""
import base64
import json
import logging
import os
import random
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv

from logo_composer import FontDescriptor

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

FONTS_DIR = os.getenv('FONTS_DIR', os.path.join(os.path.dirname(os.path.abspath(__file__)), 'fonts'))
FONT_REGISTRY_PATH = os.getenv('FONT_REGISTRY_PATH', '')


class FontStyle(str, Enum):
    PLAYFUL = "playful"
    ELEGANT = "elegant"
    PROFESSIONAL = "professional"
    CALM = "calm"
    ENERGETIC = "energetic"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(style.value for style in cls)
            raise ValueError(f"Unknown font style '{value}'. Expected one of: {allowed}")


STYLE_PROMPTS = {
    FontStyle.PLAYFUL: "The playful style has thicker strokes and a more whimsical design.",
    FontStyle.ELEGANT: "The elegant style has thinner strokes and a more minimal design.",
    FontStyle.PROFESSIONAL: "The professional style has medium strokes and a more formal design.",
    FontStyle.CALM: "The calm style has thin strokes and a more minimal design.",
    FontStyle.ENERGETIC: "The energetic style has bold strokes and a more dynamic design.",
}

DEFAULT_FONTS = {
    FontStyle.CALM: [
        {"name": "Quicksand", "path": "calm/Quicksand-Regular.ttf"},
        {"name": "Nunito", "path": "calm/Nunito-Regular.ttf"},
    ],
    FontStyle.PLAYFUL: [
        {"name": "Fredoka", "path": "playful/Fredoka-Regular.ttf"},
        {"name": "Baloo 2", "path": "playful/Baloo2-Regular.ttf"},
    ],
    FontStyle.ELEGANT: [
        {"name": "Playfair Display", "path": "elegant/PlayfairDisplay-Regular.ttf"},
        {"name": "Cormorant Garamond", "path": "elegant/CormorantGaramond-Regular.ttf"},
    ],
    FontStyle.PROFESSIONAL: [],
    FontStyle.ENERGETIC: [],
}


def build_icon_prompt(icon_description, style):
    """Prompt sent to the image-generation provider for the icon."""
    style = FontStyle.parse(style)
    prompt = f"Generate a {icon_description} icon with black strokes and a {style.value} style. "
    return prompt + STYLE_PROMPTS[style]


@dataclass(frozen=True)
class FontEntry:
    name: str
    path: str


@dataclass
class FontRegistry:
    fonts_by_style: dict = field(default_factory=dict)
    fallback_style: FontStyle = FontStyle.CALM
    base_dir: str = FONTS_DIR

    def __post_init__(self):
        cleaned = {}
        for style, entries in self.fonts_by_style.items():
            style = FontStyle.parse(style)
            kept = []
            for entry in entries or []:
                if isinstance(entry, dict):
                    entry = FontEntry(name=entry.get("name", ""), path=entry.get("path", ""))
                # placeholder entries are treated as "no font registered"
                if entry.name and entry.path:
                    kept.append(entry)
            cleaned[style] = kept
        self.fonts_by_style = cleaned
        self.fallback_style = FontStyle.parse(self.fallback_style)

    def candidates(self, style):
        style = FontStyle.parse(style)
        fonts = self.fonts_by_style.get(style) or []
        if fonts:
            return fonts

        fallback = self.fonts_by_style.get(self.fallback_style) or []
        if not fallback:
            raise LookupError(
                f"No fonts registered for style '{style.value}' "
                f"or fallback style '{self.fallback_style.value}'"
            )
        logger.info(f"No fonts for style '{style.value}', falling back to '{self.fallback_style.value}'")
        return fallback

    def resolve_path(self, entry: FontEntry):
        if os.path.isabs(entry.path):
            return entry.path
        return os.path.join(self.base_dir, entry.path)

    def get_font(self, style, rng=None) -> FontDescriptor:
        """Pick a font for the style uniformly at random and load it as base64."""
        rng = rng or random.Random()
        entry = rng.choice(self.candidates(style))
        filepath = self.resolve_path(entry)

        with open(filepath, 'rb') as f:
            payload = base64.b64encode(f.read()).decode('ascii')

        logger.info(f"Selected font '{entry.name}' for style '{FontStyle.parse(style).value}'")
        return FontDescriptor(name=entry.name, base64_payload=payload)


def load_font_registry(path, base_dir=None, fallback_style=FontStyle.CALM):
    """Build a registry from a JSON file: {"calm": [{"name": ..., "path": ...}], ...}"""
    with open(path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    if base_dir is None:
        base_dir = os.path.dirname(os.path.abspath(path))
    return FontRegistry(fonts_by_style=config, fallback_style=fallback_style, base_dir=base_dir)


def default_font_registry():
    if FONT_REGISTRY_PATH:
        logger.info(f"Loading font registry from {FONT_REGISTRY_PATH}")
        return load_font_registry(FONT_REGISTRY_PATH)
    return FontRegistry(fonts_by_style=DEFAULT_FONTS, base_dir=FONTS_DIR)
