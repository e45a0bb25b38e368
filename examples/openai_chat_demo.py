# examples/openai_chat_demo.py
"""
🤖 RAG CHAT DEMO

Streams a grounded answer and one follow-up from any OpenAI-compatible
endpoint, using a tiny in-memory search index.

Setup:
    1. Create .env file in project root with:
       OPENAI_API_KEY=your-api-key-here
       RAG_DEFAULT_PROVIDER=openai
       RAG_DEFAULT_MODEL=gpt-4o-mini

    2. Or point at a local server:
       OPENAI_BASE_URL=http://localhost:8000/v1

Run:
    uv run examples/openai_chat_demo.py
"""

import asyncio

from dotenv import load_dotenv

from chuk_rag_session import (
    ChatSession,
    EngineRegistry,
    EventKind,
    ReferenceChunk,
    SearchResults,
    openai_engine_factory,
)
from chuk_rag_session.config import DEFAULT_MODEL, DEFAULT_PROVIDER

load_dotenv()

PASSAGES = {
    "https://example.com/composable": (
        "Composable commerce is an approach where a business selects best-of-breed "
        "components and combines them into a custom application."
    ),
    "https://example.com/headless": (
        "Headless commerce separates the storefront presentation layer from the "
        "commerce engine behind an API."
    ),
}


class InMemorySearch:
    """Returns every passage, in insertion order."""

    async def search(self, query, filters):
        chunks = [
            ReferenceChunk(source_id=url, start_offset=0, end_offset=len(text), similarity_score=1.0)
            for url, text in PASSAGES.items()
        ]
        return SearchResults(chunks=chunks, documents=[{"url": url} for url in PASSAGES])

    async def resolve_passage(self, source_id, start_offset, end_offset):
        return PASSAGES[source_id][start_offset:end_offset]


async def stream(events):
    async for event in events:
        if event.type == EventKind.SEARCH:
            print(f"🔎 {len(event.message.documents)} documents, context: {event.message.metadata['context_chunk_count']} chunks")
        elif event.type == EventKind.DATA:
            print(event.message, end="", flush=True)
        elif event.type == EventKind.USAGE:
            usage = event.message
            print(f"\n📊 turn {usage.turn_number}: {usage.input_tokens} in / {usage.output_tokens} out")
            print(f"   used {usage.used}, available {usage.available} of {usage.limit}")


async def main():
    engines = EngineRegistry()
    engines.register_factory("openai", openai_engine_factory())
    engines.register_factory("local_openai", openai_engine_factory())

    search = InMemorySearch()
    chat = ChatSession(DEFAULT_PROVIDER, DEFAULT_MODEL, search=search, resolver=search, engines=engines)
    try:
        print("🚀 Question: What is composable commerce?\n")
        await stream(chat.start("What is composable commerce?"))

        if chat.can_continue():
            print("\n🚀 Follow-up: How does it relate to headless?\n")
            await stream(chat.continue_("How does it relate to headless?"))
    finally:
        chat.destroy()


if __name__ == "__main__":
    asyncio.run(main())
