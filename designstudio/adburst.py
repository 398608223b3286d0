"""AdBurst: a short ad script plus one static ad per product image."""
from __future__ import annotations

from typing import Optional

from . import claude
from .rendering import GenerationOptions

ADBURST_ASPECT_RATIO = "post"
IMAGE_FIELDS = ("image1", "image2", "image3")

SCRIPT_SYSTEM_PROMPT = (
    "You are an award-winning advertising copywriter and graphic design expert. "
    "You write short, compelling ad copy built on marketing psychology that drives "
    "audience engagement and action."
)


def build_script_prompt(product_name: str, description: Optional[str] = None, audience: Optional[str] = None) -> str:
    lines = [
        "Write a concise, engaging 8-second advertisement script (about 30-40 words) for:",
        "",
        f"Product: {product_name}",
    ]
    if description:
        lines.append(f"Description: {description}")
    if audience:
        lines.append(f"Target Audience: {audience}")
    lines += [
        "",
        "The copy should start with a compelling hook, clearly communicate the main benefit "
        "and end with a call-to-action. Keep it conversational and natural-sounding.",
        "",
        "Return ONLY the script text, nothing else.",
    ]
    return "\n".join(lines)


def write_script(product_name: str, description: Optional[str] = None, audience: Optional[str] = None) -> str:
    text = claude.complete(
        build_script_prompt(product_name, description, audience),
        system=SCRIPT_SYSTEM_PROMPT,
        max_tokens=1024,
    )
    return text.strip()


def ad_options(product_name: str, script: str, image_b64: str) -> GenerationOptions:
    """Options for one square social ad using the product photo as background."""
    prompt = (
        f"A social media advertisement for {product_name}. "
        f"Use this ad copy as the headline and supporting text: {script}"
    )
    return GenerationOptions(
        prompt=prompt,
        background_image_b64=image_b64,
        aspect_ratio=ADBURST_ASPECT_RATIO,
    )
