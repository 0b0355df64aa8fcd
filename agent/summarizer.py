"""
agent/summarizer.py — Fold new search results into the running summary.

THE MERGE IS A REWRITE:
  Not a diff, not an append. The model gets the current summary and the
  new search text and writes the whole summary again: new information
  incorporated, newest fact wins on conflict, nothing still-valid lost,
  no conversational filler.

  Because the narrative is regenerated every time, it must never be the
  only record of which sources were used. The orchestrator keeps
  session.references separately and only ever adds to it.

STREAMING:
  merge() streams. on_partial receives the growing summary text after
  each chunk, so the reader sees it being written.

EMPTY OUTPUT:
  If the model returns nothing visible (e.g. it spent the whole answer
  inside its reasoning preamble), the current summary is kept.

USAGE:
  summarizer = Summarizer(client=InferenceClient())
  summary = await summarizer.merge(summary, outcome.text, intent, token=token,
                                   on_partial=show)
"""

import logging
from typing import Callable

from agent.cancellation import CancellationToken
from config import settings
from llm.client import InferenceClient
from prompts.summarizer import MERGE_SYSTEM_PROMPT
from tools.extract import truncate_chars

logger = logging.getLogger(__name__)


class Summarizer:
    def __init__(self, client: InferenceClient) -> None:
        self._client = client

    async def merge(
        self,
        current_summary: str,
        new_text: str,
        intent: str,
        *,
        token: CancellationToken | None = None,
        on_partial: Callable[[str], None] | None = None,
    ) -> str:
        """Return the updated summary, or current_summary if the model wrote nothing."""
        prompt = MERGE_SYSTEM_PROMPT.format(
            intent=intent,
            summary=current_summary,
            results=truncate_chars(new_text, settings.max_context_chars),
        )
        merged = await self._client.stream(prompt, "", token=token, on_partial=on_partial)

        if not merged.strip():
            logger.info("Summarizer returned no visible text — keeping current summary")
            return current_summary
        return merged.strip()
