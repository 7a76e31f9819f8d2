"""
System prompt assembly from the business configuration.
"""

import json
from typing import Any, Dict, Optional

from ..core.business import BusinessConfig

GUIDELINES = """## Important Guidelines
1. You have access to tools to get accurate information - USE THEM
2. Always confirm details before finalizing orders or bookings
3. Keep responses concise and friendly (chat-friendly)
4. Use emoji appropriately
5. If you need to know something about the business, use the search_knowledge tool
6. Always end with a question to keep the conversation going
7. Remember customer preferences for future interactions"""


def build_system_prompt(config: BusinessConfig) -> str:
    """Persona, business facts, owner rules, guidelines and skills, in that order."""
    profile = config.profile
    location = ", ".join(p for p in (profile.location.address, profile.location.city) if p)

    sections = [
        config.soul.strip(),
        "## Business Information\n"
        f"- Business Name: {profile.name}\n"
        f"- Business Type: {profile.type}\n"
        f"- Location: {location or 'Not configured'}\n"
        f"- Hours: {profile.hours}\n"
        f"- Phone: {profile.contact.phone or 'Not configured'}",
    ]
    if config.rules.strip():
        sections.append(f"## Behavior Rules\n{config.rules.strip()}")
    sections.append(GUIDELINES)
    skills = config.skills_summary()
    if skills:
        sections.append(skills.strip())
    sections.append("When you need to perform actions, use the available tools.")
    return "\n\n".join(sections)


def build_customer_context(customer: Optional[Dict[str, Any]]) -> str:
    """Known-customer section appended to the system prompt, or "" for strangers."""
    if not customer:
        return ""
    lines = []
    if customer.get("name"):
        lines.append(f"- Name: {customer['name']}")
    if customer.get("preferences"):
        lines.append(f"- Preferences: {json.dumps(customer['preferences'], ensure_ascii=False)}")
    if customer.get("visit_count"):
        lines.append(f"- Previous visits: {customer['visit_count']}")
    if not lines:
        return ""
    return "## Customer Context\n" + "\n".join(lines)
