from __future__ import annotations

DEFAULT_INTENT_CARD = "ready-to-mingle"

INTENT_CARDS = [
    {"id": "ready-to-mingle", "label": "Ready to mingle", "emoji": "👋"},
    {"id": "walk_and_talk", "label": "Walk and talk", "emoji": "🚶"},
    {"id": "dog_owners", "label": "Dog owners welcome", "emoji": "🐕"},
    {"id": "coffee_chat", "label": "Coffee chat", "emoji": "☕"},
    {"id": "workout_buddy", "label": "Workout buddy", "emoji": "💪"},
    {"id": "brainstorm", "label": "Brainstorm session", "emoji": "💡"},
    {"id": "deep_conversation", "label": "Deep conversation only", "emoji": "🧠"},
    {"id": "casual_hangout", "label": "Casual hangout", "emoji": "😎"},
    {"id": "food", "label": "Looking for food", "emoji": "🍕"},
    {"id": "study", "label": "Study session", "emoji": "📚"},
    {"id": "photography", "label": "Photography walk", "emoji": "📷"},
    {"id": "music", "label": "Live music", "emoji": "🎵"},
    {"id": "bar_hopping", "label": "Bar hopping", "emoji": "🍻"},
    {"id": "creative", "label": "Creative collaboration", "emoji": "🎨"},
    {"id": "exploring", "label": "Just exploring", "emoji": "🗺️"},
]

INTENT_CARD_IDS = frozenset(card["id"] for card in INTENT_CARDS)


def validate_intent_card(value: str | None) -> str | None:
    if value is not None and value not in INTENT_CARD_IDS:
        raise ValueError(f"unknown intent card: {value!r}")
    return value
