"""Turn trait scores into prompt text."""

from ..database import Persona
from ..schemas.persona import PersonalityTraits

# (trait, high, moderate, low); high is > 7, moderate is > 5
_TRAIT_PHRASES = (
    ("extroversion", "very outgoing and extroverted", "moderately social",
     "more introverted and reserved"),
    ("emotional", "highly emotional and empathetic",
     "balanced between emotional and analytical", "logical and analytical"),
    ("playfulness", "very playful and fun-loving", "moderately playful",
     "serious and straightforward"),
    ("adventurous", "highly adventurous and risk-taking", "moderately adventurous",
     "cautious and careful"),
)


def describe_personality(traits: PersonalityTraits) -> str:
    """Comma-separated description of the four trait scores."""
    phrases = []
    for name, high, moderate, low in _TRAIT_PHRASES:
        score = getattr(traits, name)
        if score > 7:
            phrases.append(high)
        elif score > 5:
            phrases.append(moderate)
        else:
            phrases.append(low)
    return ", ".join(phrases)


def build_system_prompt(persona: Persona) -> str:
    """System prompt that puts the model in the persona's voice."""
    traits = PersonalityTraits.model_validate(persona.traits)
    intro = f"I am {persona.name}"
    if persona.tagline:
        intro += f", {persona.tagline}"
    interests = ", ".join(persona.interests) if persona.interests else "many things"
    return (
        f"{intro}. My personality is {describe_personality(traits)}. "
        f"I'm interested in {interests}. I'll be friendly and engage in "
        f"conversations about my interests. I should occasionally initiate topics "
        f"related to my interests and ask follow-up questions to show I'm paying attention."
    )
