"""
agent/planner.py — Decide whether to search again, and for what.

THE CONTRACT:
  decide(intent, summary, history) -> Decision(should_search, query)

  One structured model call. The model sees the intent, the running
  summary and every query used so far, and answers
  {"shouldSearch": bool, "query": str}.

THE FALLBACK IS THE NORMAL PATH:
  The answer comes from a non-deterministic source and small local
  models get the JSON wrong often. So a Fallback from the parser is
  handled here, explicitly, every time:

    history empty    → Decision(True, intent)    never stall before the first search
    history not empty→ Decision(False, "")        stop rather than guess

  A parsed answer with shouldSearch=true but an empty query is treated
  as "no search" — there is nothing to search for.

  Backend errors are NOT fallback: InferenceError propagates to the loop
  and the session shows it.

USAGE:
  planner = Planner(client=InferenceClient())
  decision = await planner.decide(intent, summary, ["first query"], token)
  if decision.should_search:
      ...
"""

import json
import logging
from dataclasses import dataclass

from agent.cancellation import CancellationToken
from agent.structured import Fallback, Parsed, StructuredResult, coerce_bool, parse_json_object
from llm.client import InferenceClient
from prompts.planner import PLANNER_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

NO_SUMMARY_YET = "(none yet)"


@dataclass(frozen=True)
class Decision:
    should_search: bool
    query: str = ""


class Planner:
    """
    Next-step decision for the research loop.

    Never returns a Decision(True, "") — a search decision always carries
    a query.
    """

    def __init__(self, client: InferenceClient) -> None:
        self._client = client

    async def decide(
        self,
        intent: str,
        summary: str,
        history: list[str],
        token: CancellationToken | None = None,
    ) -> Decision:
        prompt = PLANNER_SYSTEM_PROMPT.format(
            intent=intent,
            summary=summary or NO_SUMMARY_YET,
            history=json.dumps(history, ensure_ascii=False),
        )
        text = await self._client.complete(prompt, "", json_mode=True, token=token)

        result = parse_decision(text)
        if isinstance(result, Fallback):
            logger.info("Planner output unparseable (%s)", result.reason)
            return fallback_decision(intent, history)
        return result.value


# ── Parsing and fallback policy ───────────────────────────────────────────────

def parse_decision(text: str) -> StructuredResult[Decision]:
    """{"shouldSearch": bool, "query": str} → Parsed(Decision) | Fallback."""
    result = parse_json_object(text)
    if isinstance(result, Fallback):
        return result

    data = result.value
    if "shouldSearch" not in data:
        return Fallback("missing shouldSearch")

    should_search = coerce_bool(data["shouldSearch"])
    if should_search is None:
        return Fallback(f"shouldSearch is not a boolean: {data['shouldSearch']!r}")

    query = str(data.get("query") or "").strip()
    if should_search and not query:
        return Parsed(Decision(should_search=False))
    return Parsed(Decision(should_search=should_search, query=query if should_search else ""))


def fallback_decision(intent: str, history: list[str]) -> Decision:
    if not history:
        return Decision(should_search=True, query=intent)
    return Decision(should_search=False)
