import json
import logging
import operator
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END
from pydantic import ValidationError

from src.agents.analysis.prompts import RFE_ANALYST_SYSTEM_PROMPT, RFE_ANALYSIS_USER_PROMPT
from src.analysis.schemas import NoticeAnalysis
from src.llm.clients import CompletionClient, JSON_OBJECT
from src.shared.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.2
ANALYSIS_MAX_TOKENS = 4000

# Values for AnalysisAgentState["failure"]
SERVICE_FAILURE = "service"
MALFORMED_FAILURE = "malformed"


class AnalysisAgentState(TypedDict):
    notice_text: str
    raw_response: Optional[str]
    analysis: Optional[NoticeAnalysis]
    raw_sections: Optional[List[Dict[str, Any]]]
    failure: Optional[str]
    errors: Annotated[List[str], operator.add]


def create_analysis_agent(completion: CompletionClient | None = None):
    completion = completion or CompletionClient("analysis")

    async def call_model_node(state: AnalysisAgentState):
        try:
            content = await completion.complete(
                RFE_ANALYST_SYSTEM_PROMPT,
                RFE_ANALYSIS_USER_PROMPT.format(notice_text=state["notice_text"]),
                response_format=JSON_OBJECT,
                temperature=ANALYSIS_TEMPERATURE,
                max_tokens=ANALYSIS_MAX_TOKENS,
            )
        except ExternalServiceError as e:
            return {"failure": SERVICE_FAILURE, "errors": [str(e)]}
        return {"raw_response": content}

    async def parse_response_node(state: AnalysisAgentState):
        content = (state.get("raw_response") or "").strip()
        try:
            payload = json.loads(content)
        except ValueError as e:
            return {"failure": MALFORMED_FAILURE, "errors": [f"Invalid JSON: {e}"]}
        if not isinstance(payload, dict):
            return {"failure": MALFORMED_FAILURE, "errors": ["Expected a JSON object"]}

        try:
            analysis = NoticeAnalysis.model_validate(payload)
        except ValidationError as e:
            return {"failure": MALFORMED_FAILURE, "errors": [str(e)]}

        raw_sections = payload.get("sections")
        raw_sections = [s for s in raw_sections if isinstance(s, dict)] if isinstance(raw_sections, list) else []
        logger.info(f"Analysis model returned {len(analysis.sections)} sections")
        return {"analysis": analysis, "raw_sections": raw_sections}

    def route_after_call(state: AnalysisAgentState):
        return END if state.get("errors") else "parse_response"

    workflow = StateGraph(AnalysisAgentState)
    workflow.add_node("call_model", call_model_node)
    workflow.add_node("parse_response", parse_response_node)
    workflow.set_entry_point("call_model")
    workflow.add_conditional_edges("call_model", route_after_call, {"parse_response": "parse_response", END: END})
    workflow.add_edge("parse_response", END)

    return workflow.compile()


async def run_analysis_agent(notice_text: str, completion: CompletionClient | None = None) -> AnalysisAgentState:
    agent = create_analysis_agent(completion)
    return await agent.ainvoke({
        "notice_text": notice_text,
        "raw_response": None,
        "analysis": None,
        "raw_sections": None,
        "failure": None,
        "errors": [],
    })
