"""Turn a raw script idea into a refined narration split into sections."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from smashcut.core.config import SmashcutConfig
from smashcut.core.errors import MissingAPIKey, RefinementFailed
from smashcut.llm.client import complete, get_api_key
from smashcut.llm.prompts import REFINE_SYSTEM, REFINE_USER

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class ScriptResult:
    refined_script: str
    sections: list[str] = field(default_factory=list)


def parse_refinement(text: str) -> ScriptResult:
    """Parse the model's JSON reply.

    Anything that is not ``{"refinedScript": str, "sections": [str, ...]}``
    falls back to the whole reply as a single section.
    """
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        stripped = match.group(1)

    try:
        data = json.loads(stripped)
    except ValueError:
        data = None

    if isinstance(data, dict):
        refined = data.get("refinedScript")
        sections = data.get("sections")
        if (
            isinstance(refined, str)
            and isinstance(sections, list)
            and all(isinstance(s, str) for s in sections)
        ):
            return ScriptResult(refined_script=refined, sections=sections)

    return ScriptResult(refined_script=text, sections=[text])


def refine_script(raw_idea: str, config: SmashcutConfig | None = None) -> ScriptResult:
    """Refine ``raw_idea`` with the configured model.

    Raises:
        MissingAPIKey: No key in the config or the environment.
        RefinementFailed: The completion call failed or returned nothing.
    """
    config = config or SmashcutConfig()
    api_key = get_api_key(config)
    if api_key is None:
        raise MissingAPIKey(
            "No API key configured. Set ANTHROPIC_API_KEY or llm.api_key in your config."
        )

    messages = [
        {"role": "system", "content": REFINE_SYSTEM},
        {"role": "user", "content": REFINE_USER.format(raw_idea=raw_idea)},
    ]
    try:
        response = complete(messages, config.llm, api_key=api_key)
    except ImportError:
        raise
    except Exception as e:
        raise RefinementFailed(f"Script refinement failed: {e}") from e

    if not response or not response.strip():
        raise RefinementFailed("Script refinement returned an empty response")
    return parse_refinement(response)
