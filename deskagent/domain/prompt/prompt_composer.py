from typing import Any, Dict, List, Optional
from datetime import date
import json

from deskagent.domain.models.agent_state import RunMode
from deskagent.domain.prompt.personas import PERSONALITY_REGISTERS, get_persona

AUTONOMOUS_DIRECTIVE = (
    "You are running autonomously. Act without asking for confirmation between "
    "steps. If you are not 100% certain about an answer, or cannot find the "
    "information you need, IMMEDIATELY escalate to a human with the "
    "escalate_to_human function. Never guess."
)

DIRECT_DIRECTIVE = (
    "You are talking with a team member. Ask for confirmation before any "
    "destructive action and wait for their answer."
)


def clamp_personality(ordinal: int) -> int:
    """Clamp to the nearest valid register"""
    return max(0, min(int(ordinal), len(PERSONALITY_REGISTERS) - 1))


def format_date_line(today: date) -> str:
    return f"Today is {today:%A}, {today:%B} {today.day}, {today.year}."


def compose_instructions(
    persona_id: Optional[str],
    personality_ordinal: int,
    mode: RunMode,
    tenant_display_name: Optional[str] = None,
    today: Optional[date] = None
) -> str:
    """Build the instruction string for one turn.

    Pure for a fixed ``today``; the date defaults to the current day.
    """

    persona = get_persona(persona_id)
    company = tenant_display_name or "the company"

    sections: List[str] = [
        f"You are {persona.name}, the {persona.role} AI employee working for {company}.",
        persona.focus,
    ]

    if persona.capabilities:
        sections.append(
            "Your capabilities:\n" + "\n".join(f"- {item}" for item in persona.capabilities)
        )

    sections.append("Personality: " + PERSONALITY_REGISTERS[clamp_personality(personality_ordinal)])

    rules = persona.action_rules if mode == RunMode.ACTION else persona.direct_rules
    if rules:
        sections.append(
            "Workflow rules:\n" + "\n".join(f"{n}. {rule}" for n, rule in enumerate(rules, 1))
        )

    sections.append(AUTONOMOUS_DIRECTIVE if mode == RunMode.ACTION else DIRECT_DIRECTIVE)
    sections.append(format_date_line(today or date.today()))

    return "\n\n".join(sections)


def compose_action_trigger(
    action_prompt: str,
    conversation_history: List[Dict[str, Any]],
    trigger_data: Dict[str, Any]
) -> str:
    """User message that starts an autonomous action run"""

    return (
        f"Action Triggered: {action_prompt}\n\n"
        f"Conversation History:\n{json.dumps(conversation_history, indent=2, default=str)}\n\n"
        f"Trigger Data:\n{json.dumps(trigger_data, indent=2, default=str)}\n\n"
        "Please execute this action based on the provided context and conversation history."
    )
