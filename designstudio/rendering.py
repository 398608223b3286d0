"""Prompt -> Claude markup -> headless-browser screenshot.

The chain runs in sequence: build a prompt, ask Claude for
``{"htmlContent", "cssStyles"}``, pull markup out of whatever came back,
splice it into a Tailwind page, screenshot it with Chromium and clean up.
Any failure ends in a generic error image so a request still gets a bitmap.
"""
from __future__ import annotations

import json
import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from flask import current_app
from playwright.sync_api import Error as PlaywrightError, sync_playwright

from . import claude
from .errors import DesignError, MarkupExtractionError, RenderError, classify_llm_error

logger = logging.getLogger(__name__)

# -----------------------------
# Aspect-ratio presets
# -----------------------------
DEFAULT_VIEWPORT = (800, 1200)

# key -> (width, height, prompt description)
ASPECT_RATIOS: dict[str, tuple[int, int, str]] = {
    # square
    "profile": (1080, 1080, "SQUARE (1:1) format for Instagram Profile (1080×1080 pixels)"),
    "post": (1200, 1200, "SQUARE (1:1) format for Social Media Posts (1200×1200 pixels)"),
    "square_ad": (250, 250, "SQUARE (1:1) format for a Square Display Ad (250×250 pixels)"),
    # landscape
    "fb_cover": (820, 312, "WIDE RECTANGULAR format for Facebook Cover (820×312 pixels)"),
    "twitter_header": (1500, 500, "WIDE RECTANGULAR format for Twitter Header (1500×500 pixels)"),
    "yt_thumbnail": (1280, 720, "LANDSCAPE format for YouTube Thumbnail (1280×720 pixels, 16:9 ratio)"),
    "linkedin_banner": (1584, 396, "VERY WIDE format for LinkedIn Banner (1584×396 pixels, 4:1 ratio)"),
    "instream": (1920, 1080, "LANDSCAPE format for Video Ads (1920×1080 pixels, 16:9 ratio)"),
    # portrait
    "stories": (1080, 1920, "VERTICAL format for Instagram Stories (1080×1920 pixels, 9:16 ratio)"),
    "pinterest": (1000, 1500, "VERTICAL format for Pinterest Pins (1000×1500 pixels, 2:3 ratio)"),
    # display ads
    "leaderboard": (728, 90, "VERY WIDE format for a Leaderboard Display Ad (728×90 pixels)"),
    "skyscraper": (160, 600, "TALL NARROW format for a Skyscraper Display Ad (160×600 pixels)"),
}

# Containers Claude tends to wrap designs in, most specific first.
CONTAINER_SELECTORS = [
    ".flyer-container",
    ".main-container",
    ".design-container",
    ".container",
    ".content-wrapper",
    "main",
    "body > div",
]

MIN_CONTAINER_SIZE = 50

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

STYLE_VARIATIONS = [
    "with a bold, high-contrast style",
    "with a minimal, elegant style",
    "with a creative, artistic style",
    "with a professional, corporate style",
]


def viewport_for(aspect_ratio: Optional[str]) -> tuple[int, int]:
    preset = ASPECT_RATIOS.get(aspect_ratio or "")
    if not preset:
        return DEFAULT_VIEWPORT
    return preset[0], preset[1]


def describe_aspect_ratio(aspect_ratio: str) -> str:
    preset = ASPECT_RATIOS.get(aspect_ratio)
    if not preset:
        return f'Format "{aspect_ratio}" with appropriate dimensions'
    return preset[2]


# -----------------------------
# Options / results
# -----------------------------
@dataclass
class TemplateInfo:
    name: str
    category: str = ""
    description: str = ""
    tags: str = ""
    glass_morphism: bool = False
    neon_effects: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["TemplateInfo"]:
        if not data or not data.get("name"):
            return None
        tags = data.get("tags") or ""
        if isinstance(tags, (list, tuple)):
            tags = ", ".join(str(t) for t in tags)
        return cls(
            name=str(data["name"]),
            category=str(data.get("category") or ""),
            description=str(data.get("description") or ""),
            tags=str(tags),
            glass_morphism=bool(data.get("glassMorphism") or data.get("glass_morphism")),
            neon_effects=bool(data.get("neonEffects") or data.get("neon_effects")),
        )


@dataclass
class GenerationOptions:
    prompt: str
    background_image_b64: Optional[str] = None
    logo_b64: Optional[str] = None
    aspect_ratio: Optional[str] = None
    template: Optional[TemplateInfo] = None
    # brand kit fields as serialized by routes.brand_kits.serialize_brand_kit
    brand_kit: Optional[dict] = None
    inspiration_styles: list[str] = field(default_factory=list)


@dataclass
class Markup:
    html: str
    css: str = ""


@dataclass
class RenderedDesign:
    image: bytes
    fallback: bool = False
    error: Optional[DesignError] = None


# -----------------------------
# Prompt
# -----------------------------
SYSTEM_PROMPT = (
    "You are an expert graphic designer. Return your response ONLY as a valid JSON object "
    "with 'htmlContent' and 'cssStyles' properties. Never include explanations, notes, or any "
    "text outside the JSON structure. The JSON must be properly formatted and parseable."
)

BACKGROUND_NOTE = (
    "IMPORTANT: Use the above image as the BACKGROUND of your design. Do not reference it with an "
    "img tag; it is embedded for you. Pick text colors that contrast with the image and add "
    "overlays where needed to keep text readable."
)

LOGO_NOTE = (
    "IMPORTANT: Use the above image as a LOGO in your design. Place an element with "
    'id="company-logo" where the logo belongs; it is sized and filled in for you.'
)


def _brand_kit_section(kit: dict) -> str:
    lines = [f"BRAND KIT: {kit.get('name') or 'Brand'}"]
    colors = [
        f"{label} {kit[key]}"
        for label, key in (("primary", "primary_color"), ("secondary", "secondary_color"), ("accent", "accent_color"))
        if kit.get(key)
    ]
    if colors:
        lines.append("Use these brand colors: " + ", ".join(colors) + ".")
    fonts = [
        f"{label} font {kit[key]}"
        for label, key in (("heading", "heading_font"), ("body", "body_font"))
        if kit.get(key)
    ]
    if fonts:
        lines.append("Typography: " + ", ".join(fonts) + " (load from Google Fonts).")
    if kit.get("brand_voice"):
        lines.append(f"Brand voice: {kit['brand_voice']}")
    return "\n".join(lines)


def build_design_prompt(options: GenerationOptions) -> str:
    parts = [
        "You are an award-winning graphic designer. Create stunning, modern designs with excellent "
        "typography, harmonious color schemes and a clear visual hierarchy.",
    ]

    t = options.template
    if t:
        section = [
            f"SELECTED TEMPLATE: {t.name} ({t.category})",
            f"Template description: {t.description}",
            f"Key features: {t.tags}",
        ]
        if t.glass_morphism:
            section.append("IMPORTANT: Use glass morphism effects with transparency and blur in your design.")
        if t.neon_effects:
            section.append("IMPORTANT: Include subtle neon glowing elements where appropriate in your design.")
        section.append("Design this as an advertisement or visual content, NOT as a website.")
        parts.append("\n".join(section))

    if options.brand_kit:
        parts.append(_brand_kit_section(options.brand_kit))

    if options.inspiration_styles:
        styles = "\n".join(f"- {s}" for s in options.inspiration_styles if s)
        parts.append("Take visual inspiration (not content) from these competitor ad styles:\n" + styles)

    parts.append(
        "Create a PROFESSIONAL-GRADE GRAPHIC DESIGN using Tailwind CSS based on the following prompt:\n"
        f'"{options.prompt}"'
    )

    if options.aspect_ratio:
        width, height = viewport_for(options.aspect_ratio)
        parts.append(
            f"EXTREMELY IMPORTANT: This design is for the {describe_aspect_ratio(options.aspect_ratio)}.\n"
            "It MUST fit this exact aspect ratio without overflow or extra space. Always wrap the design in:\n"
            f'<div class="flyer-container" style="width: {width}px; height: {height}px; overflow: hidden;">\n'
            "  <!-- design -->\n"
            "</div>"
        )

    parts.append(
        "Return your response in the following JSON format:\n"
        "{\n"
        '  "htmlContent": "the complete HTML code for the design",\n'
        '  "cssStyles": "any custom CSS needed for advanced effects"\n'
        "}"
    )
    return "\n\n".join(parts)


def build_message_content(options: GenerationOptions) -> list[dict]:
    content = [claude.text_block(build_design_prompt(options))]
    if options.background_image_b64:
        content.append(claude.image_block(options.background_image_b64))
        content.append(claude.text_block(BACKGROUND_NOTE))
    if options.logo_b64:
        content.append(claude.image_block(options.logo_b64))
        content.append(claude.text_block(LOGO_NOTE))
    return content


# -----------------------------
# Reply parsing
# -----------------------------
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)
_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")
_HTML_DOC_RE = re.compile(r"<html[^>]*>[\s\S]*</html>", re.IGNORECASE)
_BODY_RE = re.compile(r"<body[^>]*>[\s\S]*</body>", re.IGNORECASE)


def _markup_from_json(data) -> Optional[Markup]:
    if not isinstance(data, dict):
        return None
    return Markup(html=str(data.get("htmlContent") or ""), css=str(data.get("cssStyles") or ""))


def parse_markup_reply(text: str) -> Markup:
    """Pull HTML/CSS out of a Claude reply, trying progressively looser matches."""
    raw = (text or "").strip()
    logger.debug("Claude raw response: %s...", raw[:200])

    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1).strip()

    try:
        markup = _markup_from_json(json.loads(raw))
        if markup:
            logger.info("Parsed direct JSON response")
            return markup
    except ValueError:
        logger.info("Direct JSON parse failed, trying to extract JSON")

    match = _JSON_BLOCK_RE.search(raw)
    if match:
        try:
            markup = _markup_from_json(json.loads(match.group(0)))
            if markup:
                logger.info("Parsed JSON block embedded in response")
                return markup
        except ValueError:
            logger.info("Embedded JSON block is not valid JSON")

    match = _HTML_DOC_RE.search(raw)
    if match:
        logger.info("Found HTML document directly in response")
        return Markup(html=match.group(0))

    match = _BODY_RE.search(raw)
    if match:
        logger.info("Found body tag in response")
        return Markup(html=match.group(0))

    if "<div" in raw or "<section" in raw:
        logger.info("Using response as HTML fragment")
        return Markup(html=raw)

    raise MarkupExtractionError()


def generate_markup(options: GenerationOptions) -> Markup:
    logger.info("Generating design markup with Claude (aspect=%s)", options.aspect_ratio or "default")
    reply = claude.complete(build_message_content(options), system=SYSTEM_PROMPT)
    return parse_markup_reply(reply)


# -----------------------------
# Document template
# -----------------------------
TAILWIND_CONFIG = """
tailwind.config = {
  theme: {
    extend: {
      animation: {
        'gradient': 'gradient 8s ease infinite',
        'float': 'float 6s ease-in-out infinite',
        'pulse-slow': 'pulse 4s cubic-bezier(0.4, 0, 0.6, 1) infinite',
      },
      keyframes: {
        gradient: {
          '0%, 100%': { backgroundPosition: '0% 50%' },
          '50%': { backgroundPosition: '100% 50%' },
        },
        float: {
          '0%, 100%': { transform: 'translateY(0)' },
          '50%': { transform: 'translateY(-10px)' },
        }
      }
    }
  }
}
"""

BASE_CSS = """
.gradient-text {
  background-clip: text;
  -webkit-background-clip: text;
  color: transparent;
  background-image: linear-gradient(to right, var(--tw-gradient-stops));
}
.gradient-bg {
  background-size: 200% 200%;
  animation: gradient 15s ease infinite;
}
/* horizontal text only */
h1, h2, h3, h4, h5, h6, p, span, div, li, a, strong, em, label, blockquote, caption, button {
  transform: none !important;
  rotate: 0deg !important;
}
"""


def build_document(markup: Markup, options: GenerationOptions) -> str:
    if options.background_image_b64:
        body_css = (
            "body { margin: 0; padding: 0; min-height: 100vh; "
            f"background-image: url('data:image/jpeg;base64,{options.background_image_b64}'); "
            "background-size: cover; background-position: center; background-repeat: no-repeat; }"
        )
    else:
        body_css = "body { margin: 0; padding: 0; }"

    logo_css = ""
    if options.logo_b64:
        logo_css = (
            "#company-logo { "
            f"content: url('data:image/jpeg;base64,{options.logo_b64}'); "
            "max-width: 200px; max-height: 100px; object-fit: contain; }"
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Generated Design</title>
  <script src="https://cdn.tailwindcss.com"></script>
  <script>{TAILWIND_CONFIG}</script>
  <style>
    {body_css}
    {logo_css}
    {BASE_CSS}
    {markup.css}
  </style>
</head>
<body>
{markup.html}
</body>
</html>
"""


ERROR_PAGE = """<!DOCTYPE html>
<html>
<head>
  <style>
    body { font-family: Arial, sans-serif; display: flex; justify-content: center;
           align-items: center; height: 100vh; margin: 0; background: #f8f9fa; }
    .error-container { text-align: center; padding: 2rem; border-radius: 8px; background: white;
                       box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1); max-width: 80%; }
    h1 { color: #dc2626; margin-bottom: 1rem; }
    p { color: #374151; margin-bottom: 1.5rem; }
  </style>
</head>
<body>
  <div class="error-container">
    <h1>Design Generation Error</h1>
    <p>We encountered a problem generating your design. Please try again with a different prompt or options.</p>
  </div>
</body>
</html>
"""

CENTERING_CSS = """
body { display: flex; justify-content: center; align-items: center; min-height: 100vh;
       margin: 0; padding: 0; overflow: hidden; background: #000; }
"""


# -----------------------------
# Browser
# -----------------------------
def _temp_dir() -> Path:
    path = Path(current_app.config.get("RENDER_TEMP_DIR") or os.path.join(os.getcwd(), "temp"))
    path.mkdir(parents=True, exist_ok=True)
    return path


def _launch(p):
    executable = current_app.config.get("CHROMIUM_PATH") or None
    return p.chromium.launch(headless=True, args=BROWSER_ARGS, executable_path=executable)


def screenshot_html(html: str, width: int, height: int) -> bytes:
    """Render a full HTML document and return a JPEG of its design container."""
    html_path = _temp_dir() / f"design-{uuid.uuid4().hex}.html"
    html_path.write_text(html, encoding="utf-8")
    logger.info("Saved generated HTML to %s", html_path)

    try:
        with sync_playwright() as p:
            browser = _launch(p)
            try:
                page = browser.new_page(viewport={"width": width, "height": height}, device_scale_factor=2)
                page.goto(html_path.resolve().as_uri(), wait_until="load")
                page.wait_for_timeout(500)

                for selector in CONTAINER_SELECTORS:
                    element = page.query_selector(selector)
                    if not element:
                        continue
                    box = element.bounding_box()
                    if box and box["width"] > MIN_CONTAINER_SIZE and box["height"] > MIN_CONTAINER_SIZE:
                        logger.info("Screenshotting container %s", selector)
                        try:
                            return element.screenshot(type="jpeg", quality=95)
                        except PlaywrightError as e:
                            logger.warning("Screenshot of %s failed, trying next container: %s", selector, e)

                logger.info("No suitable container found, screenshotting the viewport")
                page.add_style_tag(content=CENTERING_CSS)
                page.wait_for_timeout(100)
                return page.screenshot(type="jpeg", quality=95, full_page=False)
            finally:
                browser.close()
    finally:
        try:
            html_path.unlink()
            logger.debug("Removed temp file %s", html_path)
        except OSError as e:
            logger.warning("Could not remove temp file %s: %s", html_path, e)


def render_error_image() -> bytes:
    with sync_playwright() as p:
        browser = _launch(p)
        try:
            page = browser.new_page()
            page.set_content(ERROR_PAGE)
            return page.screenshot(type="jpeg", quality=90)
        finally:
            browser.close()


def render_design(options: GenerationOptions) -> RenderedDesign:
    """Full chain; falls back to the error image instead of failing the request."""
    try:
        markup = generate_markup(options)
        width, height = viewport_for(options.aspect_ratio)
        image = screenshot_html(build_document(markup, options), width, height)
        return RenderedDesign(image=image)
    except Exception as e:
        if isinstance(e, DesignError):
            error = e
        elif type(e).__module__.startswith("playwright"):
            error = RenderError(detail=str(e))
        else:
            error = classify_llm_error(e)
        logger.error("Design rendering failed, using fallback image: %s", e)

    try:
        return RenderedDesign(image=render_error_image(), fallback=True, error=error)
    except Exception as fallback_error:
        logger.error("Fallback image failed too: %s", fallback_error)
        raise error
