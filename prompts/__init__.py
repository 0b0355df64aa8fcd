"""
prompts/ — All LLM prompt templates for the page companion.

One file per component. Import the prompt constant you need:

    from prompts.intent import INTENT_SYSTEM_PROMPT, INTENT_USER_PROMPT
    from prompts.planner import PLANNER_SYSTEM_PROMPT
    from prompts.summarizer import MERGE_SYSTEM_PROMPT
"""
