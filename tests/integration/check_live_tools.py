"""
tests/integration/check_live_tools.py — Single-shot proof-of-life for the live tool chain.

This is not a pytest test — it's a manual script that talks to the real
network and the configured inference backend.
Run it once after setup to confirm every tool in the chain works.

What it checks:
  1. scrape_page()          — a real page comes back as visible text
  2. extract_main_content() — HTML → clean text works correctly
  3. SearchExecutor.search() — results page → links → scraped text blocks
  4. InferenceClient.complete() — backend answers a one-line prompt
  5. InferenceClient.stream()   — backend streams partial text

Run:
  python tests/integration/check_live_tools.py

Expected output:
  [1/5] Scrape page...        ✓  18,412 chars
  [2/5] Extract HTML...       ✓  61 words extracted
  [3/5] Search...             ✓  5 links, 3 scraped
  [4/5] Inference...          ✓  Reply: "Solid-state batteries use..."
  [5/5] Streaming...          ✓  7 partial updates
  All 5 tools working.
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on the path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from llm.client import InferenceClient
from tools.extract import extract_main_content, truncate_chars
from tools.fetch import scrape_page
from tools.search import SearchExecutor


QUERY = "solid state battery commercialization"
TEST_URL = "https://en.wikipedia.org/wiki/Solid-state_battery"
TEST_HTML = """
<html><body>
<nav>Home | About | Contact</nav>
<article>
<h1>Solid-State Batteries</h1>
<p>Solid-state batteries replace the liquid electrolyte in conventional
lithium-ion batteries with a solid material. This improves safety by
eliminating flammable liquids and potentially increases energy density.</p>
<p>Companies including Toyota, Samsung, and QuantumScape are pursuing
commercial production. Toyota has announced plans for vehicle integration
by 2027-2028.</p>
</article>
<footer>Copyright 2025</footer>
</body></html>
"""


async def run_live_check() -> int:
    passed = 0
    failed = 0
    outcome = None

    # ── Check 1: Scrape page ──────────────────────────────────────────────────
    print("[1/5] Scrape page...", end="  ")
    try:
        result = await scrape_page(TEST_URL)
        assert result.char_count > 500, f"Too little content: {result.char_count} chars"
        print(f"✓  {result.char_count:,} chars")
        passed += 1
    except Exception as e:
        print(f"✗  FAILED: {e}")
        failed += 1

    # ── Check 2: Extract from HTML ────────────────────────────────────────────
    print("[2/5] Extract HTML...", end="  ")
    try:
        text = extract_main_content(TEST_HTML)
        assert text, "Extraction returned empty string"
        assert "solid" in text.lower(), "Expected content not found in extraction"
        print(f"✓  {len(text.split())} words extracted")
        passed += 1
    except Exception as e:
        print(f"✗  FAILED: {e}")
        failed += 1

    # ── Check 3: Search ───────────────────────────────────────────────────────
    print("[3/5] Search...", end="  ")
    try:
        outcome = await SearchExecutor().search(QUERY)
        assert outcome.items, "No result links found"
        print(f"✓  {len(outcome.items)} links, {len(outcome.sources)} scraped")
        passed += 1
    except Exception as e:
        print(f"✗  FAILED: {e}")
        failed += 1

    client = InferenceClient()
    content = outcome.text if outcome and outcome.sources else TEST_HTML

    # ── Check 4: Inference ────────────────────────────────────────────────────
    print("[4/5] Inference...", end="  ")
    try:
        reply = await client.complete(
            f"Summarize in 2 sentences what this text says about '{QUERY}'.",
            truncate_chars(content, 4000),
        )
        assert reply and len(reply) > 20, "Reply too short or empty"
        print(f"✓  Reply: \"{reply[:60]}...\"")
        passed += 1
    except Exception as e:
        print(f"✗  FAILED: {e}")
        failed += 1

    # ── Check 5: Streaming ────────────────────────────────────────────────────
    print("[5/5] Streaming...", end="  ")
    try:
        partials: list[str] = []
        final = await client.stream(
            "List three facts about solid-state batteries as bullet points.",
            on_partial=partials.append,
        )
        assert final, "Stream returned no text"
        assert partials, "No partial updates received"
        print(f"✓  {len(partials)} partial updates")
        passed += 1
    except Exception as e:
        print(f"✗  FAILED: {e}")
        failed += 1

    # ── Summary ───────────────────────────────────────────────────────────────
    print()
    if failed == 0:
        print(f"All {passed} tools working.")
        return 0
    print(f"{passed}/5 passed, {failed}/5 FAILED.")
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(run_live_check()))
