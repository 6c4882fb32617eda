"""AI tutor agents for Goal Achiever."""

from agents.bedrock_client import BedrockClient, ModelReply
from agents.tutor_agent import TutorAgent
from agents.mock_tutor import MockTutorAgent

__all__ = [
    "BedrockClient",
    "ModelReply",
    "TutorAgent",
    "MockTutorAgent",
]
