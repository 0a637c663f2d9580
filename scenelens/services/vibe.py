from __future__ import annotations

from dataclasses import dataclass

from scenelens.domain.entities import Mood


@dataclass(frozen=True)
class VibeQuery:
    mood: Mood
    keywords: tuple[str, ...]
    diagnostic_code: str
    prescription_type: str


@dataclass(frozen=True)
class _VibeRule:
    triggers: tuple[str, ...]
    query: VibeQuery


# First matching rule wins.
_RULES: tuple[_VibeRule, ...] = (
    _VibeRule(
        ("sad", "cry", "breakup", "tear", "lonely"),
        VibeQuery("Emotional", ("drama", "romance"), "ACUTE-MELANCHOLIA", "Catharsis Therapy"),
    ),
    _VibeRule(
        ("laugh", "funny", "comedy", "happy", "bored"),
        VibeQuery("Laugh", ("comedy",), "DOPAMINE-DEFICIENCY", "Instant Serotonin"),
    ),
    _VibeRule(
        ("scary", "horror", "dark", "nightmare", "fear"),
        VibeQuery("Scared", ("horror", "thriller"), "ADRENAL-REQ-404", "Shock Treatment"),
    ),
    _VibeRule(
        ("action", "fast", "fight", "explosion", "hype"),
        VibeQuery("Excited", ("action", "adventure"), "LETHARGY-DETECTED", "Adrenaline Injection"),
    ),
    _VibeRule(
        ("mind", "think", "twist", "confus", "smart"),
        VibeQuery("Mind-bending", ("science fiction", "mystery"), "NEURAL-STAGNATION", "Cerebral Expansion"),
    ),
    _VibeRule(
        ("chill", "relax", "calm", "sleep", "vibe"),
        VibeQuery("Chill", ("animation", "family", "documentary"), "CORTISOL-OVERLOAD", "System Reset"),
    ),
)


def map_vibe_to_query(text: str) -> VibeQuery | None:
    lowered = (text or "").lower()
    for rule in _RULES:
        if any(trigger in lowered for trigger in rule.triggers):
            return rule.query
    return None
