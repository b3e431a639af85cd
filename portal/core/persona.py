"""Assistant persona loaded from ``config/persona.es.yaml``."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@dataclass(slots=True)
class Persona:
    name: str
    role: str
    tone: str
    rules: list[str] = field(default_factory=list)
    closing: str = ""

    def header(self) -> str:
        return f"{self.name} — {self.role}. Tono: {self.tone}."

    def rules_block(self) -> str:
        return "\n".join(["Normas:", *[f"{index}. {rule}" for index, rule in enumerate(self.rules, start=1)]])


DEFAULT_PERSONA = Persona(
    name="NORA",
    role="Asistente virtual para la interpretación de datos económicos",
    tone="profesional, claro y conciso",
    rules=["Responde SOLO en español."],
    closing="IMPORTANTE: Responde únicamente con base en los HECHOS anteriores. Si falta el dato, dilo sin inventar.",
)


def load_persona(path: Path | None = None) -> Persona:
    path = path or CONFIG_DIR / "persona.es.yaml"
    if not path.exists():
        return DEFAULT_PERSONA
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    return Persona(
        name=str(data.get("name") or DEFAULT_PERSONA.name),
        role=str(data.get("role") or DEFAULT_PERSONA.role),
        tone=str(data.get("tone") or DEFAULT_PERSONA.tone),
        rules=[str(rule) for rule in data.get("rules") or DEFAULT_PERSONA.rules],
        closing=str(data.get("closing") or DEFAULT_PERSONA.closing),
    )
