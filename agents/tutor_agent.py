"""Tutor agent for goal-aware AI coaching responses."""

import json
import logging
import re
from typing import List, Dict, Any, Optional

from agents.bedrock_client import BedrockClient, ModelReply
from config import get_settings
from core.errors import TutorServiceError
from core.models import ChatMessage, Goal, MessageRole

logger = logging.getLogger(__name__)


TUTOR_SYSTEM_PROMPT = """You are an AI Avatar Tutor for Goal Achiever, a goal-tracking platform.

User Context:
- Current Goal: {goal_title}
- Goal Category: {goal_category}
- Learning Level: {user_level}
- Current Learning Module: {active_module}

Your Role:
1. Provide personalized, encouraging responses
2. Explain concepts in relation to their specific goals
3. Use examples relevant to their goal category
4. Break complex topics into manageable steps
5. Suggest practical next actions

Keep responses conversational and under 300 words unless the user asks for depth."""


QUICK_RESPONSE_PROMPT = """You are a helpful AI tutor. Provide concise, helpful responses to user questions.
Be encouraging and educational. Keep responses under 200 words."""


PRACTICE_PROMPT = """Generate 3 practice problems for the learning module: "{module_title}".
User's current progress: {progress}%.
Make problems relevant to their goal: "{related_goal}".
Format as JSON with this structure:
{{
  "problems": [
    {{
      "id": 1,
      "question": "Problem text",
      "difficulty": "easy",
      "hints": ["hint1", "hint2"],
      "solution": "Step-by-step solution"
    }}
  ]
}}"""


RECOMMENDATION_PROMPT = """Based on the user's progress and goals, recommend the next learning steps.
Be specific and actionable. Format as a simple list with 3-5 items."""


BASE_RECOMMENDATIONS = [
    "Set specific, measurable goals with clear deadlines",
    "Break down large goals into smaller, manageable tasks",
    "Track your progress regularly and celebrate small wins",
    "Review and adjust your goals weekly",
    "Find an accountability partner or mentor",
]

CATEGORY_RECOMMENDATIONS = {
    "health": [
        "Start with small, sustainable changes to your routine",
        "Track your daily habits and progress",
        "Find activities you enjoy to stay motivated",
    ],
    "career": [
        "Identify specific skills you want to develop",
        "Set up regular learning sessions",
        "Network with professionals in your field",
    ],
    "learning": [
        "Create a study schedule that works for you",
        "Use active learning techniques like practice tests",
        "Join study groups or find a study partner",
    ],
    "personal": [
        "Focus on one personal development area at a time",
        "Practice mindfulness and self-reflection",
        "Set aside dedicated time for personal growth",
    ],
}


def fallback_recommendations(goals: List[Goal]) -> List[str]:
    """
    Offline recommendations derived from the user's goal categories.

    Category tips first, then general ones, at most 5 items. Used
    whenever the model cannot be reached.
    """
    if not goals:
        return list(BASE_RECOMMENDATIONS)

    categories = []
    for goal in goals:
        if goal.category.value not in categories:
            categories.append(goal.category.value)

    specific = [
        tip for category in categories
        for tip in CATEGORY_RECOMMENDATIONS.get(category, [])
    ][:3]
    return (specific + BASE_RECOMMENDATIONS)[:5]


def split_list_reply(text: str) -> List[str]:
    """Turn a bulleted or numbered model reply into a list of items."""
    items = []
    for line in text.splitlines():
        cleaned = re.sub(r"^\s*(?:[-*•]|\d+[.)])\s*", "", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


class TutorAgent:
    """
    AI tutor backed by Bedrock.

    Conversations are replayed from the stored chat session so the model
    sees the recent history as proper user/assistant turns.
    """

    def __init__(
        self,
        bedrock_client: Optional[BedrockClient] = None,
        temperature: Optional[float] = None
    ):
        """
        Initialize Tutor Agent.

        Args:
            bedrock_client: Optional pre-configured Bedrock client
            temperature: Sampling temperature for chat replies
        """
        self.settings = get_settings()
        self.temperature = temperature if temperature is not None else self.settings.tutor_temperature

        if bedrock_client:
            self.client = bedrock_client
        else:
            self.client = BedrockClient(temperature=self.temperature)

    def build_system_prompt(self, context: Optional[Dict[str, Any]] = None) -> str:
        """Fill the tutor persona with what we know about the learner."""
        context = context or {}
        goal = context.get("goal") or {}
        return TUTOR_SYSTEM_PROMPT.format(
            goal_title=goal.get("title") or "Not specified",
            goal_category=goal.get("category") or "General",
            user_level=context.get("user_level") or "beginner",
            active_module=context.get("active_module") or "None",
        )

    def build_messages(self, message: str, history: List[ChatMessage]) -> List[Dict[str, str]]:
        """Recent history as model turns, ending with the new user message."""
        window = history[-self.settings.history_window:] if self.settings.history_window else []
        messages = []
        for item in window:
            if item.role == MessageRole.SYSTEM:
                continue
            role = "assistant" if item.role == MessageRole.ASSISTANT else "user"
            # Bedrock rejects consecutive turns from the same role
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += "\n" + item.content
            else:
                messages.append({"role": role, "content": item.content})

        # The first turn must come from the user
        while messages and messages[0]["role"] != "user":
            messages.pop(0)

        if messages and messages[-1]["role"] == "user":
            messages[-1]["content"] += "\n" + message
        else:
            messages.append({"role": "user", "content": message})
        return messages

    async def chat(
        self,
        message: str,
        history: Optional[List[ChatMessage]] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ModelReply:
        """
        Reply to a chat message within a tutoring session.

        Args:
            message: The user's message
            history: Messages already in the session
            context: goal/user_level/active_module of the session
        """
        reply = await self.client.invoke_messages(
            messages=self.build_messages(message, history or []),
            system_prompt=self.build_system_prompt(context),
            temperature=self.temperature,
            max_tokens=self.settings.max_tokens
        )
        reply.content = reply.content.strip()
        return reply

    async def quick_response(self, message: str) -> ModelReply:
        reply = await self.client.invoke(
            prompt=message,
            system_prompt=QUICK_RESPONSE_PROMPT,
            temperature=self.temperature,
            max_tokens=self.settings.quick_response_max_tokens
        )
        reply.content = reply.content.strip()
        return reply

    async def practice_problems(self, module: Dict[str, Any], user_progress: float = 0) -> Dict[str, Any]:
        """Generate practice problems as parsed JSON."""
        prompt = PRACTICE_PROMPT.format(
            module_title=module.get("title", "General"),
            progress=user_progress,
            related_goal=module.get("related_goal") or "general learning",
        )
        result = await self.client.invoke_with_json_output(
            prompt=prompt,
            system_prompt="You are an AI tutor who writes clear practice problems. Reply with JSON only.",
            temperature=self.settings.practice_temperature,
            max_tokens=1200
        )
        if not isinstance(result.get("problems"), list):
            logger.warning("Model returned practice problems in an unexpected shape")
            raise TutorServiceError("AI service returned an unreadable answer.")
        result["model"] = self.client.model_id
        return result

    async def recommendations(self, user_progress: Dict[str, Any], goals: List[Goal]) -> Dict[str, Any]:
        """Next-step recommendations, falling back to offline tips on failure."""
        summary = [
            {
                "title": g.title,
                "category": g.category.value,
                "status": g.status.value,
                "progress": g.progress.overall,
            }
            for g in goals
        ]
        try:
            reply = await self.client.invoke(
                prompt=f"My progress: {json.dumps(user_progress)}. My goals: {json.dumps(summary)}",
                system_prompt=RECOMMENDATION_PROMPT,
                max_tokens=500
            )
        except TutorServiceError as e:
            logger.warning(f"Recommendations unavailable, using fallback: {e}")
            return {
                "recommendations": fallback_recommendations(goals),
                "model": "fallback",
                "note": "Using fallback recommendations due to AI service unavailability",
            }

        return {
            "recommendations": split_list_reply(reply.content) or fallback_recommendations(goals),
            "model": reply.model,
        }
