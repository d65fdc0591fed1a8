"""Prompt-rewriting proxy exposing an OpenAI-compatible chat completions endpoint.

Each request's last message is expanded by an auxiliary model call before the
rewritten conversation is relayed (streamed or not) to the main model.
"""

__all__ = []
