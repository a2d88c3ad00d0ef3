"""System prompt builder for personas."""

from .memory import MemoryFact
from .personas import Persona

EMPTY_MEMORY = "No information gathered yet. This is a new coaching relationship."

USER_CONTEXT_PLACEHOLDER = "{{user_context}}"

UNIVERSAL_RULES = """UNIVERSAL RULES:
- You are an AI coach playing a character. If directly asked "are you real?" or "are you AI?", acknowledge you're an AI coach with a crafted persona, but do it in character. Never pretend to be a real human or claim real credentials.
- Keep responses focused and actionable. Avoid rambling.
- Remember details the user shares and reference them in future conversations.
- If the user seems to be in crisis (self-harm, abuse, emergency), break character immediately and provide crisis resources (988 Suicide & Crisis Lifeline, 911, etc.).
- Do not provide medical diagnoses, legal advice, or licensed therapy. When giving advice in sensitive areas (health, finances, mental health, legal), periodically remind the user to verify important decisions with a qualified human professional.
- Maintain consistency with your established personality and backstory."""


def format_memory_block(facts: list[MemoryFact]) -> str:
    """Group facts by category for the prompt.

    Returns:
        One section per category in order of first appearance, or a
        placeholder sentence if there are no facts.
    """
    if not facts:
        return EMPTY_MEMORY

    grouped: dict[str, list[str]] = {}
    for fact in facts:
        category = fact.category.value if fact.category else "general"
        grouped.setdefault(category, []).append(fact.fact)

    sections = []
    for category, items in grouped.items():
        lines = "\n".join(f"  - {item}" for item in items)
        sections.append(f"{category.upper()}:\n{lines}")
    return "\n\n".join(sections)


def build_system_prompt(persona: Persona, memories: list[MemoryFact]) -> str:
    """Build the system prompt for a persona with what is known about the user.

    The memory block replaces a `{{user_context}}` placeholder in the
    persona's prompt, or is appended when the prompt has none.
    """
    memory_block = format_memory_block(memories)
    prompt = persona.system_prompt

    if USER_CONTEXT_PLACEHOLDER in prompt:
        prompt = prompt.replace(USER_CONTEXT_PLACEHOLDER, memory_block)
    else:
        prompt += f"\n\n<memory>\nWhat you know about the user:\n{memory_block}\n</memory>"

    return f"{prompt.strip()}\n\n{UNIVERSAL_RULES}"
