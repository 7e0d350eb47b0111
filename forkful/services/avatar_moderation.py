"""
Avatar image moderation (prompt-based, multimodal).

This path is deliberately separate from review image moderation: it FAILS
OPEN. Provider errors, empty replies and unparseable replies all approve the
avatar so users are never blocked by an outage. Review images fail closed;
the two policies are kept apart on purpose.
"""

from __future__ import annotations
import json
from typing import Any, Dict, Optional

from forkful.utils.errors import log_info, log_warning

APPROVED_BY_DEFAULT = "Moderation check failed, approved by default."

SYSTEM_PROMPT = """You are an image content moderator for a restaurant review site.
Analyze the user's image to ensure it is family-friendly.

- Rules: Flag content that is not family-friendly. This includes violence, nudity, offensive symbols, and Public Displays of Affection (PDA) like kissing.
- Safe Content: Photos of food, drinks, restaurant environments, and portraits of people are generally safe.

Output only a JSON object: { "safe": boolean, "reason": "string" }.
If safe, reason is "". If unsafe, use the generic reason "Image is too explicit."
"""


def _approved_by_default() -> Dict[str, Any]:
    return {"safe": True, "reason": APPROVED_BY_DEFAULT}


def _strip_code_fence(text: str) -> str:
    t = text.strip()
    if t.startswith("```json"):
        t = t[7:]
    elif t.startswith("```"):
        t = t[3:]
    if t.endswith("```"):
        t = t[:-3]
    return t.strip()


def parse_verdict(content: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse the model reply into {"safe": bool, "reason": str}; None if malformed."""
    if not content or not content.strip():
        return None
    try:
        data = json.loads(_strip_code_fence(content))
    except ValueError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("safe"), bool):
        return None
    return {"safe": data["safe"], "reason": str(data.get("reason") or "")}


def moderate_avatar(image_data_url: Optional[str], api_key: str, model: str = "gpt-4o-mini",
                    timeout: float = 10) -> Dict[str, Any]:
    """
    Classify an avatar image.

    Args:
        image_data_url: Image as a data URL (data:image/png;base64,...) or https URL
        api_key: OpenAI API key (checked by the caller)
        model: litellm model name
        timeout: Seconds before the provider call is abandoned

    Returns:
        {"safe": bool, "reason": str}. Never raises for provider problems.
    """
    if not image_data_url:
        return {"safe": True, "reason": ""}

    log_info("Processing avatar moderation request")
    try:
        from litellm import completion

        resp = completion(
            model=model,
            api_key=api_key,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": [
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ]},
            ],
            max_tokens=200,
            temperature=0.1,
            response_format={"type": "json_object"},
            timeout=timeout,
        )
        content = resp.choices[0].message.content if resp.choices else None
    except Exception as e:
        # Fail open so users aren't blocked by provider errors
        log_warning(f"Avatar moderation provider error, approving by default: {str(e)[:300]}")
        return _approved_by_default()

    verdict = parse_verdict(content)
    if verdict is None:
        log_warning("Avatar moderation returned an unusable reply, approving by default")
        return _approved_by_default()
    return verdict
