"""Compose a generated icon and a brand name into embeddable SVG fragments.

The composer never decides how big the final drawing is. It hands back three
fragments (font face, icon group, text label) and the caller wraps them in an
``<svg>`` element of its own choosing, see ``render_logo_document``.
"""
import html
import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

XML_DECLARATION_RE = re.compile(r'<\?xml.*?\?>', re.DOTALL)
DOCTYPE_RE = re.compile(r'<!DOCTYPE.*?>', re.DOTALL)
SVG_OPEN_TAG_RE = re.compile(r'<svg[^>]*>')
SVG_CLOSE_TAG_RE = re.compile(r'</svg>')

ICON_GROUP_ID = "icon"
SVG_NAMESPACE = "http://www.w3.org/2000/svg"


@dataclass(frozen=True)
class LayoutConstants:
    """Tunable coefficients of the brand-name driven layout."""
    base_font_size: float = 76.0
    font_decay_rate: float = 2.75
    base_scale: float = 0.04
    scale_decay_rate: float = 0.0003
    base_offset: float = 6.0
    offset_growth_rate: float = 0.25
    # Optional floors; None keeps the plain linear formulas
    min_font_size: Optional[float] = None
    min_icon_scale: Optional[float] = None


DEFAULT_LAYOUT = LayoutConstants()


@dataclass(frozen=True)
class LayoutParameters:
    font_size: float
    icon_scale: float
    translate_offset: float


@dataclass(frozen=True)
class FontDescriptor:
    name: str
    base64_payload: str


@dataclass(frozen=True)
class CompositionResult:
    icon_markup: str
    label_markup: str
    font_face_markup: str
    font_family: str
    layout: LayoutParameters


@dataclass(frozen=True)
class Canvas:
    """Outer drawing surface chosen by the caller."""
    width: float
    height: float
    label_x: float
    label_y: float
    view_box: Optional[str] = None


def sanitize_icon(raw_svg):
    """Strip a provider's SVG document down to its drawable content.

    Removes XML and DOCTYPE declarations and the outer ``<svg>`` open/close
    tags. This is plain text substitution: input without those parts comes
    back unchanged and nothing is validated.
    """
    if isinstance(raw_svg, bytes):
        raw_svg = raw_svg.decode('utf-8')

    fragment = XML_DECLARATION_RE.sub('', raw_svg)
    fragment = DOCTYPE_RE.sub('', fragment)
    fragment = SVG_OPEN_TAG_RE.sub('', fragment, count=1)
    fragment = SVG_CLOSE_TAG_RE.sub('', fragment, count=1)
    return fragment


def calculate_layout(brand_name_length: int, constants: LayoutConstants = DEFAULT_LAYOUT) -> LayoutParameters:
    """Derive font size, icon scale and icon offset from the brand name length.

    Longer names give a smaller font and a smaller icon, and push the icon a
    little further in.
    """
    n = brand_name_length
    font_size = constants.base_font_size - constants.font_decay_rate * n
    icon_scale = constants.base_scale - constants.scale_decay_rate * n
    translate_offset = constants.base_offset + constants.offset_growth_rate * n

    if constants.min_font_size is not None:
        font_size = max(constants.min_font_size, font_size)
    if constants.min_icon_scale is not None:
        icon_scale = max(constants.min_icon_scale, icon_scale)

    return LayoutParameters(
        font_size=font_size,
        icon_scale=icon_scale,
        translate_offset=translate_offset,
    )


def format_number(value):
    """Render a float for an SVG attribute without float noise (65.0 -> 65)."""
    return format(round(value, 6), 'g')


def build_icon_markup(icon_fragment, layout: LayoutParameters):
    offset = format_number(layout.translate_offset)
    scale = format_number(layout.icon_scale)
    return (
        f'<g id="{ICON_GROUP_ID}" transform="translate({offset}, {offset}) scale({scale})">'
        f'{icon_fragment}</g>'
    )


def css_string(value):
    """Escape text for a single-quoted CSS string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_label_markup(brand_name, font_family, layout: LayoutParameters):
    family = html.escape(css_string(font_family), quote=True)
    text = html.escape(brand_name, quote=False)
    size = format_number(layout.font_size)
    return (
        f'<text style="font-family: \'{family}\', sans-serif; font-size: {size}px; fill: black;">'
        f'{text}</text>'
    )


def build_font_face_markup(font: FontDescriptor):
    family = html.escape(css_string(font.name), quote=False)
    return (
        '<style type="text/css">'
        f"@font-face {{ font-family: '{family}'; "
        f'src: url("data:font/ttf;base64,{font.base64_payload}") format("truetype"); }}'
        '</style>'
    )


def compose_logo(raw_icon, brand_name, font: FontDescriptor,
                 layout_constants: LayoutConstants = DEFAULT_LAYOUT) -> CompositionResult:
    """Build the icon, label and font-face fragments for one generation."""
    brand_name = brand_name or ""
    icon_fragment = sanitize_icon(raw_icon or "")
    layout = calculate_layout(len(brand_name), layout_constants)

    logger.info(
        f"Composing logo for brand of length {len(brand_name)}: "
        f"font_size={format_number(layout.font_size)} "
        f"scale={format_number(layout.icon_scale)} "
        f"offset={format_number(layout.translate_offset)}"
    )
    if layout.font_size <= 0 or layout.icon_scale <= 0:
        logger.warning(f"Degenerate layout for brand name of length {len(brand_name)}: {layout}")

    return CompositionResult(
        icon_markup=build_icon_markup(icon_fragment, layout),
        label_markup=build_label_markup(brand_name, font.name, layout),
        font_face_markup=build_font_face_markup(font),
        font_family=font.name,
        layout=layout,
    )


def render_logo_document(result: CompositionResult, canvas: Canvas):
    """Wrap composed fragments in an ``<svg>`` element sized by the caller."""
    width = format_number(canvas.width)
    height = format_number(canvas.height)
    view_box = canvas.view_box or f"0 0 {width} {height}"
    label_x = format_number(canvas.label_x)
    label_y = format_number(canvas.label_y)

    return (
        f'<svg xmlns="{SVG_NAMESPACE}" width="{width}" height="{height}" '
        f'viewBox="{html.escape(view_box, quote=True)}" preserveAspectRatio="xMidYMid meet">'
        f'<defs>{result.font_face_markup}</defs>'
        f'{result.icon_markup}'
        f'<g id="label" transform="translate({label_x}, {label_y})" dominant-baseline="middle">'
        f'{result.label_markup}</g>'
        '</svg>'
    )
