"""
agent/intent.py — Infer what the reader wants to learn from the page.

One structured model call per session: page title, URL, description and
an excerpt of the content go in; {"intent": ..., "query": ...} comes out.

The query is optional. When the model proposes one, the orchestrator
stores it as the session's pending_query and uses it for the first
search instead of asking the Planner straight away.

FALLBACK:
  Unparseable output or an empty intent gives an intent derived from the
  page itself ("Learn more about: <title>") and no pending query. The
  loop still starts — with no history and no summary, the first search
  uses the intent text as its query.

Backend errors are not a fallback case: InferenceError propagates and
the session shows it.
"""

import logging
from dataclasses import dataclass

from agent.cancellation import CancellationToken
from agent.structured import Fallback, parse_json_object
from config import settings
from llm.client import InferenceClient
from prompts.intent import INTENT_SYSTEM_PROMPT, INTENT_USER_PROMPT
from tools.content import PageContent
from tools.extract import truncate_chars

logger = logging.getLogger(__name__)


@dataclass
class IntentResult:
    intent: str
    query: str = ""
    fallback_reason: str = ""

    @property
    def used_fallback(self) -> bool:
        return bool(self.fallback_reason)


class IntentInferrer:
    def __init__(self, client: InferenceClient) -> None:
        self._client = client

    async def infer(
        self,
        page: PageContent,
        token: CancellationToken | None = None,
    ) -> IntentResult:
        user_prompt = INTENT_USER_PROMPT.format(
            title=page.title,
            url=page.location,
            description=page.description,
            content=truncate_chars(page.content, settings.max_context_chars),
        )
        text = await self._client.complete(
            INTENT_SYSTEM_PROMPT, user_prompt, json_mode=True, token=token
        )

        result = parse_json_object(text)
        if isinstance(result, Fallback):
            logger.info("Intent output unparseable (%s) — using page title", result.reason)
            return _fallback_intent(page, result.reason)

        intent = str(result.value.get("intent") or "").strip()
        query = str(result.value.get("query") or "").strip()
        if not intent:
            return _fallback_intent(page, "empty intent")
        return IntentResult(intent=intent, query=query)


def _fallback_intent(page: PageContent, reason: str) -> IntentResult:
    subject = page.title or page.description or page.location
    return IntentResult(intent=f"Learn more about: {subject}", fallback_reason=reason)
