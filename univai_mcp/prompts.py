"""Prompt templates served by ``POST /prompt``."""

from __future__ import annotations

from typing import Any, Dict, List

from univai_mcp.registry import PromptDefinition

Message = Dict[str, str]


def _messages(system: str, user: str) -> List[Message]:
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def _render_answer_with_context(params: Dict[str, Any]) -> List[Message]:
    blocks = "\n\n".join(f"[{index}] {chunk}" for index, chunk in enumerate(params["context"], start=1))
    system = (
        "Answer using only the numbered context passages. Cite passages as [n]. "
        "If the context does not contain the answer, say so."
    )
    return _messages(system, f"Context:\n{blocks}\n\nQuestion: {params['question']}")


def _render_summarize_and_cite(params: Dict[str, Any]) -> List[Message]:
    sources = "\n".join(f"[{index}] {source}" for index, source in enumerate(params.get("sources", []), start=1))
    max_words = params.get("maxWords", 150)
    system = f"Summarize the text in at most {max_words} words. Cite the listed sources as [n] where they apply."
    user = f"Text:\n{params['text']}"
    if sources:
        user += f"\n\nSources:\n{sources}"
    return _messages(system, user)


def _render_mint_transaction_plan(params: Dict[str, Any]) -> List[Message]:
    supply = params.get("supply", 1)
    royalty_percent = params["royaltyBps"] / 100
    system = (
        "Produce a step-by-step plan for minting a digital asset on Solana. "
        "List each transaction, the signer, and the expected fees. Do not execute anything."
    )
    user = (
        f"Asset: {params['assetName']}\n"
        f"Creator wallet: {params['creatorWallet']}\n"
        f"Royalty: {royalty_percent:g}% ({params['royaltyBps']} bps)\n"
        f"Supply: {supply}"
    )
    return _messages(system, user)


ANSWER_WITH_CONTEXT = PromptDefinition(
    name="answer_with_context",
    description="Answer a question grounded in retrieved context passages.",
    parameters_schema={
        "type": "object",
        "required": ["question", "context"],
        "properties": {
            "question": {"type": "string", "minLength": 1},
            "context": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        },
        "additionalProperties": False,
    },
    render=_render_answer_with_context,
)

SUMMARIZE_AND_CITE = PromptDefinition(
    name="summarize_and_cite",
    description="Summarize text and cite the supplied sources.",
    parameters_schema={
        "type": "object",
        "required": ["text"],
        "properties": {
            "text": {"type": "string", "minLength": 1},
            "sources": {"type": "array", "items": {"type": "string"}},
            "maxWords": {"type": "integer", "minimum": 10, "maximum": 1000},
        },
        "additionalProperties": False,
    },
    render=_render_summarize_and_cite,
)

MINT_TRANSACTION_PLAN = PromptDefinition(
    name="mint_transaction_plan",
    description="Plan the transactions needed to mint an asset with royalties.",
    parameters_schema={
        "type": "object",
        "required": ["assetName", "creatorWallet", "royaltyBps"],
        "properties": {
            "assetName": {"type": "string", "minLength": 1, "maxLength": 100},
            "creatorWallet": {"type": "string", "minLength": 1},
            "royaltyBps": {"type": "integer", "minimum": 0, "maximum": 10000},
            "supply": {"type": "integer", "minimum": 1},
        },
        "additionalProperties": False,
    },
    render=_render_mint_transaction_plan,
)

PROMPTS = (ANSWER_WITH_CONTEXT, SUMMARIZE_AND_CITE, MINT_TRANSACTION_PLAN)
