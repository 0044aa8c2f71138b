# graphs/chat_graph.py
from typing import List, Optional
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from langgraph.prebuilt import ToolNode

from core.config import MAX_TOOL_STEPS
from graphs.state import ChatState
import logging

logger = logging.getLogger(__name__)


def build_chat_graph(
    llm: BaseChatModel,
    system: str,
    tools: Optional[List] = None,
    max_steps: int = MAX_TOOL_STEPS,
):
    """
    chat -> (tools -> chat)* -> END

    The loop stops once the model answers without tool calls or after
    ``max_steps`` model calls, whichever comes first.
    """
    tools = tools or []
    bound_llm = llm.bind_tools(tools) if tools else llm

    # --------------------- CHAT NODE ------------------------------
    async def chat_node(state: ChatState, config=None):
        messages = [SystemMessage(content=system)] + state["messages"]
        response = await bound_llm.ainvoke(messages, config=config)
        return {"messages": [response], "steps": state.get("steps", 0) + 1}

    # --------------------- ROUTER ---------------------------------
    def route_after_chat(state: ChatState) -> str:
        last = state["messages"][-1]
        if not isinstance(last, AIMessage) or not last.tool_calls:
            return END
        if state.get("steps", 0) >= max_steps:
            logger.info("Tool step limit (%s) reached, ending turn", max_steps)
            return END
        return "tools"

    graph = StateGraph(ChatState)
    graph.add_node("chat", chat_node)
    graph.add_edge(START, "chat")

    if tools:
        graph.add_node("tools", ToolNode(tools, handle_tool_errors=True))
        graph.add_conditional_edges("chat", route_after_chat, {"tools": "tools", END: END})
        graph.add_edge("tools", "chat")
    else:
        graph.add_edge("chat", END)

    return graph.compile()
