# agents/forecast_agent.py
from langchain_core.messages import HumanMessage, SystemMessage
from core.llm_forecast_prompt import FORECAST_SYSTEM, build_forecast_prompt
from core.settings import get_model
from schema.forecast_v1 import ForecastResult

async def forecast_agent(messages, config=None):
    """
    Send messages to the chat model and return its reply under "messages"
    """
    if config is None:
        config = {"configurable": {}}

    model = get_model(config["configurable"].get("model"))

    # If messages is a dict with "messages" key, extract it
    if isinstance(messages, dict) and "messages" in messages:
        message_list = messages["messages"]
    else:
        message_list = messages if isinstance(messages, list) else [messages]

    response = await model.ainvoke(message_list)

    return {"messages": [response]}


async def narrate_forecast(result: ForecastResult, config=None) -> str:
    msgs = [
        SystemMessage(content=FORECAST_SYSTEM),
        HumanMessage(content=build_forecast_prompt(result)),
    ]
    reply = await forecast_agent({"messages": msgs}, config=config)
    return reply["messages"][-1].content
