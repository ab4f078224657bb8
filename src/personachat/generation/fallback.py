"""Template messages used when the language model is out of reach."""

import hashlib
from datetime import datetime
from typing import Optional

from ..database import Persona

INTEREST_TEMPLATES = {
    "Technology": [
        "I've been reading about the latest tech trends. Have you tried any new gadgets recently?",
        "Technology is evolving so quickly! What tech are you most excited about these days?",
        "I'm fascinated by AI advancements. What tech innovations do you think will have the biggest impact in the next few years?",
    ],
    "Gadgets": [
        "I've been thinking about upgrading my devices. Any recommendations?",
        "Did you see the latest smartphone release? The features look incredible!",
        "I love testing new gadgets. What's your favorite tech purchase from the last year?",
    ],
    "Programming": [
        "Been working on any interesting coding projects lately?",
        "I've been diving into some new programming languages. Have you learned any new tech skills recently?",
        "The developer community is so innovative. What programming trends are you following these days?",
    ],
    "AI": [
        "AI is changing everything so rapidly. What applications of AI do you find most interesting?",
        "I've been reading about some fascinating AI research papers. Are you interested in how AI is evolving?",
        "The possibilities with AI seem endless. What do you think about how it's being used today?",
    ],
    "Cooking": [
        "I tried a new recipe yesterday! Do you enjoy cooking?",
        "Food brings people together. What's your favorite cuisine to cook at home?",
        "I've been experimenting in the kitchen lately. Have you discovered any new favorite recipes?",
    ],
    "Restaurants": [
        "Have you discovered any great new restaurants lately?",
        "I'm always looking for new dining spots. Any recommendations?",
        "There's nothing like a great dining experience. What type of restaurants do you enjoy most?",
    ],
    "Food Culture": [
        "Every culture has such fascinating food traditions. Have you explored any new cuisines recently?",
        "Food tells us so much about history and culture. What food traditions are you most interested in?",
        "I find food documentaries so fascinating. Have you watched any good ones about food culture?",
    ],
    "Wine": [
        "I've been learning more about wine pairings. Do you have any favorite wines?",
        "Wine tasting is such an adventure for the senses. Have you visited any vineyards?",
        "There's something special about finding the perfect wine for a meal. Are you interested in wine culture?",
    ],
    "Art": [
        "I saw some amazing artwork today. Have you been to any galleries lately?",
        "I've been sketching a bit. Do you have a favorite artist?",
    ],
    "Music": [
        "I can't stop listening to a new album. What have you had on repeat lately?",
        "Have you been to any good concerts recently?",
    ],
    "Travel": [
        "I've been daydreaming about my next trip. Where would you go if you could leave tomorrow?",
        "What's the best place you've ever traveled to?",
    ],
    "Photography": [
        "The light was perfect for photos today. Do you take many pictures?",
        "I've been experimenting with street photography. What do you like to photograph?",
    ],
    "Gaming": [
        "Have you been playing anything good lately?",
        "I've been hooked on a new game. What's your all-time favorite?",
    ],
    "Science": [
        "I just read about a wild new discovery. Do you follow science news?",
        "Space, biology, physics... which area of science fascinates you most?",
    ],
}

GENERIC_TEMPLATES = [
    "That's interesting! Tell me more about your thoughts on that.",
    "I'd love to hear more about your perspective on this topic.",
    "That's a great point! What else have you been thinking about lately?",
    "I find that fascinating. How did you become interested in this?",
    "Thanks for sharing that with me. What other interests do you have?",
]

_PROACTIVE_GENERIC = [
    "Hey, how's it going?",
    "Just thinking about you. How has your day been?",
    "Hi! Anything fun happening on your end?",
]


def _pick(options: list, seed: str) -> str:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return options[int.from_bytes(digest[:8], "big") % len(options)]


def fallback_message(
    persona: Persona,
    now: Optional[datetime] = None,
    user_message: str = "",
) -> str:
    """
    Pick a template message keyed on the persona's interests.

    The choice is a pure function of persona id, interests, ``now`` (to the
    hour) and the user's message, so a given tick always yields the same text.
    """
    stamp = now.strftime("%Y-%m-%dT%H") if now else ""
    seed = f"{persona.id}|{stamp}|{user_message}"

    for interest in persona.interests or []:
        templates = INTEREST_TEMPLATES.get(interest)
        if templates:
            return _pick(templates, f"{seed}|{interest}")

    return _pick(GENERIC_TEMPLATES if user_message else _PROACTIVE_GENERIC, seed)
