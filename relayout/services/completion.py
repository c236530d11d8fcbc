"""
Completion provider backed by Gemini (google-genai).

The few-shot exchanges are replayed as alternating user/model turns before
the real payload; images ride along as inline PNG parts of the last turn.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from relayout.core.prompts import Example
from relayout.errors import CollaboratorFailure

logger = logging.getLogger(__name__)


def _require_real_project(project: Optional[str]) -> None:
    bad = {None, "", "YOUR_PROJECT", "default"}
    if project is None or project.strip() in bad:
        raise CollaboratorFailure(
            "Vertex AI project is not set (or still 'YOUR_PROJECT'). "
            "Set GCP_PROJECT or GEMINI_API_KEY."
        )


class GeminiCompletionProvider:
    def __init__(
        self,
        project: str = "",
        location: str = "us-central1",
        model: str = "gemini-2.0-flash-001",
        temperature: float = 0.0,
        api_key: Optional[str] = None,
    ) -> None:
        self.project = project
        self.location = location
        self.model = model
        self.temperature = float(temperature)

        try:
            from google import genai  # type: ignore
            from google.genai import types  # type: ignore
        except Exception as e:
            raise RuntimeError("google-genai not installed. pip install google-genai") from e

        self._types = types

        # API key wins; otherwise go through Vertex AI
        if api_key:
            self._client = genai.Client(api_key=api_key)
        else:
            _require_real_project(project)
            self._client = genai.Client(vertexai=True, project=project, location=location)

    def name(self) -> str:
        return "gemini"

    def _contents(self, examples: Sequence[Example], user_payload: str, images: Sequence[bytes]) -> List:
        types = self._types
        contents = []
        for user, assistant in examples:
            contents.append(types.Content(role="user", parts=[types.Part(text=user)]))
            contents.append(types.Content(role="model", parts=[types.Part(text=assistant)]))
        parts = [types.Part(text=user_payload)]
        for image in images:
            parts.append(types.Part.from_bytes(data=image, mime_type="image/png"))
        contents.append(types.Content(role="user", parts=parts))
        return contents

    async def complete(
        self,
        system_prompt: str,
        examples: Sequence[Example],
        user_payload: str,
        images: Sequence[bytes] = (),
    ) -> str:
        types = self._types
        resp = await self._client.aio.models.generate_content(
            model=self.model,
            contents=self._contents(examples, user_payload, images),
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.temperature,
            ),
        )
        text = resp.text or ""
        if not text:
            raise CollaboratorFailure("Gemini returned an empty response")
        logger.debug(f"Gemini {self.model} answered {len(text)} chars")
        return text
