import operator
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END

from src.agents.drafting.prompts import (
    KNOWLEDGE_CONTEXT_BLOCK,
    NO_EVIDENCE_LISTED,
    RFE_DRAFTER_SYSTEM_PROMPT,
    RFE_DRAFTING_USER_PROMPT,
)
from src.llm.clients import CompletionClient
from src.shared.exceptions import ExternalServiceError

DRAFTING_TEMPERATURE = 0.3
DRAFTING_MAX_TOKENS = 3000


class DraftingAgentState(TypedDict):
    issue: Dict[str, Any]  # section_type, title, cfr_reference, original_text, summary
    evidence: List[Dict[str, Any]]  # document_name, priority, description
    case: Dict[str, Any]  # visa_type, petitioner_name
    knowledge: List[Dict[str, Any]]  # content, metadata
    user_prompt: Optional[str]
    content: Optional[str]
    errors: Annotated[List[str], operator.add]


def format_knowledge_context(knowledge: List[Dict[str, Any]]) -> str:
    if not knowledge:
        return ""
    sources = []
    for i, chunk in enumerate(knowledge, start=1):
        metadata = chunk.get("metadata") or {}
        title = metadata.get("title") or "Knowledge Doc"
        doc_type = metadata.get("doc_type") or "unknown"
        sources.append(f"--- Source {i}: {title} ({doc_type}) ---\n{chunk.get('content', '')}")
    return KNOWLEDGE_CONTEXT_BLOCK.format(sources="\n\n".join(sources))


def build_user_prompt(state: DraftingAgentState) -> str:
    issue = state["issue"]
    evidence = "\n".join(
        f"- {item.get('document_name')} ({item.get('priority')}): {item.get('description') or ''}"
        for item in state.get("evidence") or []
    )
    section_type = issue.get("section_type") or "general"
    return RFE_DRAFTING_USER_PROMPT.format(
        issue_type=section_type.replace("_", " ").capitalize(),
        title=issue.get("title") or "",
        cfr_reference=issue.get("cfr_reference") or "N/A",
        original_text=issue.get("original_text") or "",
        summary=issue.get("summary") or "",
        evidence=evidence or NO_EVIDENCE_LISTED,
        visa_type=state["case"].get("visa_type") or "",
        petitioner_name=state["case"].get("petitioner_name") or "",
        knowledge_context=format_knowledge_context(state.get("knowledge") or []),
    )


def create_drafting_agent(completion: CompletionClient | None = None):
    completion = completion or CompletionClient("drafting")

    async def build_prompt_node(state: DraftingAgentState):
        return {"user_prompt": build_user_prompt(state)}

    async def call_model_node(state: DraftingAgentState):
        try:
            content = await completion.complete(
                RFE_DRAFTER_SYSTEM_PROMPT,
                state["user_prompt"],
                temperature=DRAFTING_TEMPERATURE,
                max_tokens=DRAFTING_MAX_TOKENS,
            )
        except ExternalServiceError as e:
            return {"errors": [str(e)]}
        if not content.strip():
            return {"errors": ["Empty draft returned by model"]}
        return {"content": content}

    workflow = StateGraph(DraftingAgentState)
    workflow.add_node("build_prompt", build_prompt_node)
    workflow.add_node("call_model", call_model_node)
    workflow.set_entry_point("build_prompt")
    workflow.add_edge("build_prompt", "call_model")
    workflow.add_edge("call_model", END)

    return workflow.compile()
