"""Offline tutor used when USE_MOCK_AI is set or AWS is not configured."""

import copy
import logging
from typing import List, Dict, Any, Optional

from agents.bedrock_client import ModelReply
from core.models import ChatMessage, Goal

logger = logging.getLogger(__name__)


MOCK_MODEL = "mock-ai-service"

GENERIC_RESPONSES = [
    "I'd be happy to help you with that! Let me break this down into manageable steps.",
    "That's a great question! Here's how you can approach this goal effectively.",
    "I can see you're working on something important. Let me provide some guidance.",
    "Excellent progress! Here are some strategies to help you move forward.",
    "I understand your challenge. Let me share some insights that might help.",
]

KEYWORD_RESPONSES = [
    ("goal", "I can help you set and achieve your goals! Start by making them SMART: "
             "Specific, Measurable, Achievable, Relevant, and Time-bound."),
    ("help", "I'm here to help you succeed! I can assist with goal setting, learning strategies, "
             "and providing motivation. What would you like to work on?"),
    ("learn", "Learning is a journey! Break down complex topics into smaller chunks, practice "
              "regularly, and don't be afraid to make mistakes. They're part of the process."),
]

PRACTICE_PROBLEMS = [
    {
        "id": 1,
        "question": "What is the first step in setting a SMART goal?",
        "difficulty": "easy",
        "hints": ["Think about what makes a goal specific", "Consider what you want to achieve"],
        "solution": "Make your goal Specific: clearly define what you want to accomplish.",
    },
    {
        "id": 2,
        "question": "How do you measure progress toward your goal?",
        "difficulty": "medium",
        "hints": ["Think about quantifiable metrics", "Consider milestones"],
        "solution": "Set measurable criteria and track progress with specific metrics and milestones.",
    },
    {
        "id": 3,
        "question": "What makes a goal achievable?",
        "difficulty": "medium",
        "hints": ["Consider your resources", "Think about realistic timelines"],
        "solution": "A goal is achievable when it is realistic given your resources, skills and time.",
    },
]

RECOMMENDATIONS = [
    "Review your current goals and identify any that need adjustment",
    "Break down large goals into smaller, actionable steps",
    "Set up a daily routine to work on your goals",
    "Track your progress regularly and celebrate small wins",
    "Seek feedback from mentors or peers on your approach",
]


class MockTutorAgent:
    """
    Deterministic stand-in for TutorAgent.

    Same coroutine interface; replies depend only on the message text.
    """

    model_id = MOCK_MODEL

    def _respond(self, message: str) -> str:
        lowered = message.lower()
        for keyword, response in KEYWORD_RESPONSES:
            if keyword in lowered:
                return response
        return GENERIC_RESPONSES[sum(map(ord, message)) % len(GENERIC_RESPONSES)]

    def _reply(self, message: str) -> ModelReply:
        content = self._respond(message)
        return ModelReply(
            content=content,
            model=MOCK_MODEL,
            usage={"input_tokens": len(message.split()), "output_tokens": len(content.split())}
        )

    async def chat(
        self,
        message: str,
        history: Optional[List[ChatMessage]] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ModelReply:
        return self._reply(message)

    async def quick_response(self, message: str) -> ModelReply:
        return self._reply(message)

    async def practice_problems(self, module: Dict[str, Any], user_progress: float = 0) -> Dict[str, Any]:
        logger.debug(f"Mock practice problems for module {module.get('title')}")
        return {"problems": copy.deepcopy(PRACTICE_PROBLEMS), "model": MOCK_MODEL}

    async def recommendations(self, user_progress: Dict[str, Any], goals: List[Goal]) -> Dict[str, Any]:
        return {"recommendations": list(RECOMMENDATIONS), "model": MOCK_MODEL}
