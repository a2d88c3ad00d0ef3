"""Persona catalog: which provider, model and prompt each persona uses."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Persona:
    """An AI persona the user can chat with."""

    id: str
    name: str
    domain: str
    provider_id: str
    model_id: str
    system_prompt: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Persona":
        """Create from a catalog entry.

        Accepts the catalog's `ai_provider`/`ai_model` names as well.
        """
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            domain=str(data.get("domain", "general")),
            provider_id=str(data.get("provider_id") or data["ai_provider"]),
            model_id=str(data.get("model_id") or data["ai_model"]),
            system_prompt=str(data.get("system_prompt", "")),
        )


class PersonaCatalog:
    """In-memory lookup of personas by id."""

    def __init__(self, personas: list[Persona] | None = None) -> None:
        self._personas: dict[str, Persona] = {}
        for persona in personas or []:
            self.add(persona)

    def add(self, persona: Persona) -> None:
        """Add a persona."""
        if persona.id in self._personas:
            raise ValueError(f"Persona '{persona.id}' already defined")
        self._personas[persona.id] = persona

    def get(self, persona_id: str) -> Persona | None:
        """Get a persona by id."""
        return self._personas.get(persona_id)

    def list_ids(self) -> list[str]:
        """List all persona ids."""
        return list(self._personas.keys())

    def __len__(self) -> int:
        return len(self._personas)


def load_personas(path: Path) -> PersonaCatalog:
    """Load a catalog from a JSON file holding a list of persona objects.

    Raises:
        ValueError: If the file is not a JSON list of valid entries.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of personas")

    try:
        return PersonaCatalog([Persona.from_dict(entry) for entry in data])
    except (KeyError, TypeError) as e:
        raise ValueError(f"{path}: invalid persona entry: {e}") from e
