# chuk_rag_session/prompts.py
"""
Base system and style prompts that frame the retrieved context.

The same prompts seed both dispatch branches: they are replayed in front of
the history for stateless backends, and used as the initial state of a
stateful handle.
"""

from __future__ import annotations

import json

from chuk_rag_session.models.enums import PromptRole
from chuk_rag_session.tokens import estimate_tokens

SYSTEM_PROMPT = "You are a helpful assistant"

CONTEXT_PREAMBLE = (
    "The following content is provided as context in XML format, split into CHUNKS of each "
    "original piece of content. Each chunk is a <CHUNK> element containing text content "
    "<CONTENT> with a reference url/hyperlink/link of <URL>. The chunk content is as follows:\n\n"
)

STYLE_PROMPTS = (
    "Try to use information from <CHUNK /><CONTENT /> context wherever possible in your answer. "
    "The chunks are in ranked order from most relevant to least relevant, so have a bias towards "
    "the earlier chunks. However, always use the most relevant context from any chunk when "
    "constructing your answer and citations.",
    "Do NOT add any links if not directly from <CHUNK><URL /></CHUNK> context.",
    "If there is no relevant information to answer the question in <CHUNK> context, then state "
    "that you don't have enough information to answer the question.",
    "When citing URLs, do NOT hallucinate them. Your context must contain a fully complete URL "
    "for you to cite it or emit it in an answer.",
)

QUESTION_TEMPLATE = "My question is: {query}"


def build_base_prompts(context: str = "") -> list[dict[str, str]]:
    """System prompt, the context block and the style rules, in order."""
    messages = [
        {"role": PromptRole.SYSTEM.value, "content": SYSTEM_PROMPT},
        {"role": PromptRole.ASSISTANT.value, "content": f"{CONTEXT_PREAMBLE}{context}"},
    ]
    messages.extend({"role": PromptRole.ASSISTANT.value, "content": rule} for rule in STYLE_PROMPTS)
    return messages


def create_messages(query: str, context: str = "") -> list[dict[str, str]]:
    """Single-shot message array: base prompts followed by the question."""
    return [
        *build_base_prompts(context),
        {"role": PromptRole.USER.value, "content": QUESTION_TEMPLATE.format(query=query)},
    ]


# Fixed overhead of the prompts with an empty query and no context
BASE_TOKEN_ESTIMATE = estimate_tokens(json.dumps(create_messages(query="")))
