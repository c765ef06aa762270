"""
Extraction agent: free text to build commands and wizard answers.

Every failure on this path (provider errors, undecodable or invalid output)
is reported as ``None`` so callers can tell the user the text could not be
parsed. Nothing here raises to the caller.
"""

import json
from typing import Any, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from models import ActionList
from utils.llm import LLMError, extract_json, strip_code_fence

from .base import BaseAgent
from .prompts import COMMAND_PROMPT, STEP_PROMPTS, STEP_TEMPLATE


StepValue = Union[str, List[Any]]


def _content(result: Any) -> str:
    return getattr(result, "content", result) if not isinstance(result, str) else result


class ExtractionAgent(BaseAgent):
    """Wraps the LLM client for the two extraction tasks the bot needs."""

    @property
    def agent_type(self) -> str:
        return "extraction"

    async def parse_command(self, text: str) -> Optional[ActionList]:
        """Turn a natural-language build instruction into an ``ActionList``."""
        try:
            result = await self.llm_call(COMMAND_PROMPT.format(text=text), metadata={"task": "command"})
            data = extract_json(_content(result) or "")
            if isinstance(data, list):
                data = {"actions": data}
            action_list = ActionList.model_validate(data)
        except (LLMError, json.JSONDecodeError, PydanticValidationError) as e:
            self.logger.warning(f"Could not parse build instruction: {e}")
            return None

        self.logger.info(f"Parsed instruction into {len(action_list)} actions")
        return action_list

    async def extract_step(self, step: int, text: str) -> Optional[StepValue]:
        """
        Extract one wizard answer.

        Step 1 yields a plain string, step 2 a list of names and step 3 a list
        of ``{"downline", "upline"}`` objects. Returns None when nothing usable comes back.
        """
        if step not in STEP_PROMPTS:
            raise ValueError(f"Unknown wizard step: {step}")

        prompt = STEP_TEMPLATE.format(instruction=STEP_PROMPTS[step], text=text)
        try:
            content = (_content(await self.llm_call(prompt, metadata={"task": f"step_{step}"})) or "").strip()
        except LLMError as e:
            self.logger.warning(f"Wizard step {step} extraction failed: {e}")
            return None

        if not content:
            return None

        if step == 1:
            return self._plain_name(content)

        try:
            value = extract_json(content)
        except json.JSONDecodeError:
            self.logger.warning(f"Wizard step {step} returned non-JSON output")
            return None
        if isinstance(value, (list, str, dict)):
            return value
        return None

    @staticmethod
    def _plain_name(content: str) -> Optional[str]:
        try:
            value = extract_json(content)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, str):
            name = value
        elif isinstance(value, list) and value and isinstance(value[0], str):
            name = value[0]
        elif isinstance(value, dict) and isinstance(value.get("name"), str):
            name = value["name"]
        else:
            name = strip_code_fence(content)
        name = name.strip().strip('"').strip("'").strip()
        return name or None
