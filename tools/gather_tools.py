# =================== ALL TOOLS File Import ===================
from tools.get_weather import get_weather
from tools.artifacts import create_document, update_document, request_suggestions
from services.model_catalog import ChatModel
from typing import List


# =================== Gather All Tools ===================
def gather_tools(model: ChatModel) -> List:

    """
    Tools active for a chat turn.
    Every catalog model gets the full set; ``reasoning`` only changes how
    its output is streamed.
    """

    return [get_weather, create_document, update_document, request_suggestions]
