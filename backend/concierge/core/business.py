"""
Business Profile - The business configuration the agent and tools read from.
Loaded from ``business.json`` in the config directory.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Optional

import aiofiles
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

_PRICE_NUMBER = re.compile(r"[^0-9.]")
_SERVICE_SPLIT = re.compile(r"[-—]")
_WORD = re.compile(r"[a-z0-9]+")


def _menu_words(text: str) -> List[str]:
    """Lowercase words with simple plurals folded: ``"Steak Sandwiches"`` -> ``["steak", "sandwich"]``."""
    words = []
    for word in _WORD.findall(text.lower()):
        if len(word) > 4 and word.endswith(("ches", "shes", "xes", "sses")):
            word = word[:-2]
        elif len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
            word = word[:-1]
        words.append(word)
    return words


def _contains_run(words: List[str], run: List[str]) -> bool:
    size = len(run)
    return any(words[i:i + size] == run for i in range(len(words) - size + 1))


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Location(_CamelModel):
    address: str = ""
    city: str = ""
    google_maps_url: str = ""


class Contact(_CamelModel):
    phone: str = ""
    email: Optional[str] = None


class MenuItem(BaseModel):
    name: str
    price: str = "TBD"

    @property
    def unit_price(self) -> Optional[float]:
        return parse_price(self.price)


class BusinessProfile(_CamelModel):
    """Business details as configured by the owner."""
    name: str = "Restaurant"
    type: str = "restaurant"
    description: Optional[str] = None
    hours: str = "Not configured"
    location: Location = Field(default_factory=Location)
    contact: Contact = Field(default_factory=Contact)
    services: List[str] = Field(default_factory=list)

    def menu(self) -> List[MenuItem]:
        """Parse ``services`` entries like ``"Butter Chicken - R85"``."""
        items = []
        for service in self.services:
            parts = _SERVICE_SPLIT.split(service, maxsplit=1)
            name = parts[0].strip() or service
            price = parts[1].strip() if len(parts) > 1 and parts[1].strip() else "TBD"
            items.append(MenuItem(name=name, price=price))
        return items

    def match_menu_items(self, name: str) -> List[MenuItem]:
        """
        Menu items a requested name refers to, compared word by word.

        An exact name wins. Otherwise every item whose name contains the
        requested words in order matches, so ``"naan"`` finds ``"Garlic Naan"``
        but ``"steak"`` never finds ``"Tea"``.
        """
        wanted = _menu_words(name)
        if not wanted:
            return []
        items = [(item, _menu_words(item.name)) for item in self.menu()]
        exact = [item for item, words in items if words == wanted]
        if exact:
            return exact[:1]
        return [item for item, words in items if _contains_run(words, wanted)]

    def find_menu_item(self, name: str) -> Optional[MenuItem]:
        """The single menu item ``name`` refers to; None if unknown or ambiguous."""
        matches = self.match_menu_items(name)
        return matches[0] if len(matches) == 1 else None


def parse_price(value) -> Optional[float]:
    """Turn ``85``, ``"85.50"`` or ``"R85"`` into a float; None if no number is present."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    digits = _PRICE_NUMBER.sub("", str(value))
    if not digits:
        return None
    try:
        return float(digits)
    except ValueError:
        return None


async def read_text(path: Path, default: str = "") -> str:
    """Read a UTF-8 text file, returning ``default`` if it is missing."""
    if not path.exists():
        return default
    async with aiofiles.open(path, 'r', encoding='utf-8') as f:
        return await f.read()


async def load_business_profile(config_dir: str) -> BusinessProfile:
    """
    Load ``business.json`` from the config directory.
    A missing or invalid file yields the default profile.
    """
    path = Path(config_dir) / "business.json"
    raw = await read_text(path)
    if not raw:
        logger.warning(f"No business config found at {path}, using defaults")
        return BusinessProfile()
    try:
        return BusinessProfile.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid business config at {path}: {e}")
        return BusinessProfile()


class Skill(BaseModel):
    name: str
    triggers: List[str] = Field(default_factory=list)
    flow: List[str] = Field(default_factory=list)


class BusinessConfig:
    """
    Everything read from the config directory: the business profile, the
    agent persona (SOUL.md), behavior rules (AGENTS.md) and skills.json.
    ``reload`` re-reads all of it after the owner edits the configuration.
    """

    DEFAULT_SOUL = "# Business AI Assistant\n\nI am a helpful assistant for this business."

    def __init__(self, config_dir: str):
        self.config_dir = config_dir
        self.profile = BusinessProfile()
        self.soul = self.DEFAULT_SOUL
        self.rules = ""
        self.skills: List[Skill] = []

    async def reload(self) -> "BusinessConfig":
        base = Path(self.config_dir)
        self.profile = await load_business_profile(self.config_dir)
        self.soul = await read_text(base / "SOUL.md", self.DEFAULT_SOUL)
        self.rules = await read_text(base / "AGENTS.md")
        self.skills = await self._load_skills(base / "skills.json")
        logger.info(
            f"Business config loaded: {self.profile.name} "
            f"({len(self.profile.services)} services, {len(self.skills)} skills)"
        )
        return self

    async def _load_skills(self, path: Path) -> List[Skill]:
        raw = await read_text(path)
        if not raw:
            return []
        try:
            return [Skill.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Invalid skills file at {path}: {e}")
            return []

    def skills_summary(self) -> str:
        if not self.skills:
            return ""
        summary = "## AVAILABLE SKILLS\n"
        for skill in self.skills:
            summary += f"\n### {skill.name}\n"
            summary += f"Triggers: {', '.join(skill.triggers) or 'None'}\n"
            summary += f"When triggered: {' → '.join(skill.flow) or 'N/A'}\n"
        return summary


def format_money(value: float, currency: str = "R") -> str:
    """``170.0`` -> ``R170``, ``12.5`` -> ``R12.50``."""
    value = round(float(value), 2)
    amount = f"{int(value)}" if value.is_integer() else f"{value:.2f}"
    return f"{currency}{amount}"
