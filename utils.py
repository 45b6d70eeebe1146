import os
import re
import logging
from functools import lru_cache

import requests
import replicate
from openai import OpenAI
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Image-generation provider: "replicate" (SVG native) or "openai" (SVG code via chat)
ICON_PROVIDER = os.getenv('ICON_PROVIDER', 'replicate').strip().lower()

# API keys
REPLICATE_API_TOKEN = os.getenv('REPLICATE_API_TOKEN') or os.getenv('REPLICATE_API_KEY')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')

# Model names
RECRAFT_SVG_MODEL = os.getenv('RECRAFT_SVG_MODEL', 'recraft-ai/recraft-20b-svg')
SVG_GENERATOR_MODEL = os.getenv('SVG_GENERATOR_MODEL', 'gpt-4.1-mini')

ICON_SIZE = "1024x1024"
ICON_STYLE = "icon"
PROVIDER_TIMEOUT_SECONDS = int(os.getenv('PROVIDER_TIMEOUT_SECONDS', '60'))

SVG_BLOCK_RE = re.compile(r'<svg[\s\S]*?</svg>', re.IGNORECASE)


class IconGenerationError(Exception):
    """Raised when the image-generation provider fails or returns no SVG."""


@lru_cache(maxsize=1)
def get_replicate_client():
    if not REPLICATE_API_TOKEN:
        raise IconGenerationError("REPLICATE_API_TOKEN must be set in environment variables")
    return replicate.Client(api_token=REPLICATE_API_TOKEN)


@lru_cache(maxsize=1)
def get_openai_client():
    if not OPENAI_API_KEY:
        raise IconGenerationError("OPENAI_API_KEY must be set in environment variables")
    return OpenAI(api_key=OPENAI_API_KEY)


def _read_replicate_output(output):
    """Replicate returns a file object, a URL or a list of either."""
    if isinstance(output, (list, tuple)):
        if not output:
            raise IconGenerationError("Replicate returned an empty output list")
        output = output[0]

    if hasattr(output, 'read'):
        return output.read()

    response = requests.get(str(output), timeout=PROVIDER_TIMEOUT_SECONDS)
    if response.status_code != 200:
        raise IconGenerationError(f"Failed to download generated icon: HTTP {response.status_code}")
    return response.content


def generate_icon_with_replicate(prompt):
    """Generate an SVG icon with Recraft on Replicate"""
    logger.info(f"Generating icon with {RECRAFT_SVG_MODEL}")
    try:
        output = get_replicate_client().run(
            RECRAFT_SVG_MODEL,
            input={
                "prompt": prompt,
                "size": ICON_SIZE,
                "style": ICON_STYLE,
            }
        )
        svg_bytes = _read_replicate_output(output)
    except IconGenerationError:
        raise
    except Exception as e:
        logger.error(f"Error generating icon with Replicate: {str(e)}")
        raise IconGenerationError(f"Replicate request failed: {e}") from e

    if isinstance(svg_bytes, str):
        return svg_bytes
    try:
        return svg_bytes.decode('utf-8')
    except UnicodeDecodeError as e:
        raise IconGenerationError("Generated icon is not UTF-8 SVG markup") from e


def generate_icon_with_openai(prompt):
    """Ask a chat model for SVG code and keep only the <svg> block"""
    logger.info(f"Generating icon SVG code with {SVG_GENERATOR_MODEL}")
    system_prompt = """You are an expert SVG icon designer. Create a single clean, scalable icon as SVG code.
Guidelines:
1. Use a square viewBox of 0 0 1024 1024
2. Use only paths and basic shapes, black strokes, no text
3. Do not embed raster images

Return ONLY the SVG code without any explanations or comments."""

    try:
        response = get_openai_client().chat.completions.create(
            model=SVG_GENERATOR_MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt}
            ],
            temperature=0.7,
        )
        content = response.choices[0].message.content or ""
    except IconGenerationError:
        raise
    except Exception as e:
        logger.error(f"Error generating icon with OpenAI: {str(e)}")
        raise IconGenerationError(f"OpenAI request failed: {e}") from e

    match = SVG_BLOCK_RE.search(content)
    if not match:
        logger.error(f"OpenAI response did not contain SVG code: {content[:200]}")
        raise IconGenerationError("OpenAI response did not contain SVG code")
    return match.group(0)


def generate_icon_svg(prompt):
    """Generate raw icon SVG markup with the configured provider"""
    logger.info(f"Icon prompt: {prompt[:200]}")
    if ICON_PROVIDER == 'openai':
        return generate_icon_with_openai(prompt)
    if ICON_PROVIDER == 'replicate':
        return generate_icon_with_replicate(prompt)
    raise IconGenerationError(f"Unknown ICON_PROVIDER '{ICON_PROVIDER}'")


def convert_svg_to_png(svg_code, output_width=None):
    """Convert SVG code to PNG bytes"""
    # cairosvg needs the cairo system library, load it only when exporting
    import cairosvg

    try:
        return cairosvg.svg2png(bytestring=svg_code.encode('utf-8'), output_width=output_width)
    except Exception as e:
        logger.error(f"Error in SVG to PNG conversion: {str(e)}")
        raise
