"""Direct mode: Gemini plans the images, kie.ai renders them"""

import json
import logging
import re
from typing import Optional

import httpx

from mdillustrate.api.base import BaseApiClient, plan_from_items
from mdillustrate.config import Settings
from mdillustrate.core.models import Plan, PollableJob
from mdillustrate.errors import ApiError


logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
KIE_API_BASE = "https://api.kie.ai/api/v1"
KIE_MODEL = "nano-banana-pro"

STYLE_MODIFIERS: dict[str, tuple[str, str]] = {
    "infographic": (
        "Create a modern infographic visualization.",
        "Use flat design, data-driven icons, clean color palette. Professional infographic style.",
    ),
    "diagram": (
        "Create a clear conceptual diagram.",
        "Use geometric shapes, connecting arrows, hierarchical layout. Minimal diagram style.",
    ),
    "card": (
        "Create a summary card design.",
        "Use bold visual hierarchy, icon grid, gradient background. Modern UI card style.",
    ),
    "whiteboard": (
        "Create a hand-drawn whiteboard sketch.",
        "Use loose sketchy lines, warm colors, informal doodle style. Educational whiteboard feel.",
    ),
    "slide": (
        "Create a professional presentation slide design.",
        "Use corporate color scheme, structured layout, subtle gradients. Business slide style.",
    ),
}

LANGUAGE_NAMES = {"ja": "Japanese", "en": "English"}

PLAN_PROMPT = """Summarize the note below and plan {count} images that illustrate it.
Answer with JSON only, in this shape:
{{
  "items": [
    {{
      "id": "img1",
      "title": "short image title",
      "afterHeading": "the heading of the section the image belongs to",
      "prompt": "image generation prompt ({style} style, text in {language})",
      "description": "one-line caption"
    }}
  ]
}}

Note:
{excerpt}"""

_JSON_OBJECT_RE = re.compile(r'\{.*\}', re.DOTALL)


def enhance_prompt(prompt: str, style: str) -> str:
    """Wrap prompt with the style's prefix and suffix (infographic when unknown)."""
    prefix, suffix = STYLE_MODIFIERS.get(style, STYLE_MODIFIERS["infographic"])
    return f"{prefix}\n\n{prompt}\n\n{suffix}"


def parse_plan_text(text: str) -> Plan:
    """Extract the JSON object from free-form model output."""
    m = _JSON_OBJECT_RE.search(text)
    if not m:
        raise ApiError("Failed to parse plan from Gemini response")
    try:
        data = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise ApiError(f"Failed to parse plan from Gemini response: {e}") from e
    if not isinstance(data, dict):
        raise ApiError("Failed to parse plan from Gemini response: expected an object")
    return plan_from_items(data.get("items"))


class DirectApiClient(BaseApiClient):

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> None:
        if not settings.gemini_api_key or not settings.kie_api_key:
            raise ValueError("Direct mode needs both gemini_api_key and kie_api_key")
        super().__init__(settings, http)

    def _kie_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.kie_api_key}"}

    async def generate_plan(self, excerpt: str, settings: Settings) -> Plan:
        prompt = PLAN_PROMPT.format(
            count=settings.image_count,
            style=settings.image_style,
            language=LANGUAGE_NAMES.get(settings.language, settings.language),
            excerpt=excerpt,
        )
        response = await self._send(
            "POST", GEMINI_URL,
            params={"key": self._settings.gemini_api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        data = self._json(response)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ApiError("Gemini response has no text candidate") from e
        plan = parse_plan_text(text)
        logger.info("Planned %d image(s)", len(plan.items))
        return plan

    async def create_job(self, prompt: str, settings: Settings) -> str:
        response = await self._send(
            "POST", f"{KIE_API_BASE}/jobs/createTask",
            headers=self._kie_headers(),
            json={
                "model": KIE_MODEL,
                "input": {
                    "prompt": enhance_prompt(prompt, settings.image_style),
                    "aspect_ratio": settings.aspect_ratio or "1:1",
                    "resolution": settings.resolution,
                    "output_format": "png",
                },
            },
        )
        job_id = self._json(response).get("job_id")
        if not job_id:
            raise ApiError("No job_id in response")
        return job_id

    async def get_job(self, job_id: str) -> PollableJob:
        response = await self._send("GET", f"{KIE_API_BASE}/jobs/{job_id}", headers=self._kie_headers())
        data = self._json(response)
        output, error = data.get("output") or {}, data.get("error") or {}
        if not isinstance(output, dict) or not isinstance(error, dict):
            raise ApiError(f"Malformed status for job {job_id}: output and error must be objects")
        return self._job(job_id, data, result_ref=output.get("image_url"), error_message=error.get("message"))
