"""Knowledge-base search."""

from __future__ import annotations

from pydantic import BaseModel, Field

from aurachat.tools.builtins.http_provider import HttpProviderTool


class KnowledgeSearchInput(BaseModel):
    query: str = Field(min_length=1, max_length=500)
    limit: int = Field(default=5, ge=1, le=10)


class KnowledgeSearchTool(HttpProviderTool):
    name = "search_knowledge_base"
    description = "Search the trading education knowledge base for relevant articles."
    input_schema = KnowledgeSearchInput
    timeout_seconds = 3.0
