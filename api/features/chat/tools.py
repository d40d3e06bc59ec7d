"""Tools the chat model may call."""
import random
from typing import Any, Dict, List

from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field


class WeatherInput(BaseModel):
    location: str = Field(description="The location to get the weather for")


@tool("weather", args_schema=WeatherInput)
def weather(location: str) -> Dict[str, Any]:
    """Get the weather in a location (fahrenheit)."""
    temperature = random.randint(32, 90)
    return {"location": location, "temperature": temperature}


def default_tools() -> List[BaseTool]:
    return [weather]
