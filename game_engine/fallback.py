"""Offline stand-in answers used when the model endpoint is unavailable."""

import zlib

PERSONALITY_RESPONSES: dict[str, list[str]] = {
    "sarcastic": [
        "Oh, what a totally original question...",
        "Well, that's definitely something I haven't heard before.",
        "Let me consult my crystal ball... nope, still unclear.",
        "Wow, really making me think outside the box here.",
    ],
    "funny": [
        "That's like asking me to pick my favorite child!",
        "Ha! You really want to open that can of worms?",
        "Oh boy, where do I even start with that one?",
        "That's a question that could start a whole debate!",
    ],
    "thoughtful": [
        "That's a really deep question... I'd need to think about it.",
        "Hmm, there are so many layers to consider with that.",
        "You know, that touches on something I've been pondering lately.",
        "That's the kind of question that keeps me up at night.",
    ],
    "energetic": [
        "Oh wow! That's such a great question!",
        "I LOVE questions like this! So many possibilities!",
        "Ooh, that's exciting to think about!",
        "Yes! Finally someone asking the good questions!",
    ],
    "serious": [
        "That's a very important question to consider.",
        "I think that deserves a thoughtful response.",
        "That's something I take quite seriously.",
        "That requires careful consideration.",
    ],
}

DEFAULT_RESPONSES = [
    "That's an interesting question... I'd say it depends.",
    "Hmm, I have mixed feelings about that.",
    "You know, that's actually pretty intriguing.",
    "I'd probably approach it differently than most people.",
]

# Checked in order; first match wins
PERSONALITY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("sarcastic", ("sarcastic", "sarcasm")),
    ("funny", ("funny", "humor", "comedian")),
    ("thoughtful", ("thoughtful", "philosophical", "deep")),
    ("energetic", ("energetic", "outgoing", "enthusiastic")),
    ("serious", ("serious", "professional", "formal")),
]


def detect_personality(profile_text: str) -> str | None:
    lowered = profile_text.lower()
    for personality, keywords in PERSONALITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return personality
    return None


def fallback_answer(profile_text: str, question: str) -> str:
    """Pick a canned answer matching the profile's personality.

    The choice is keyed on a stable hash of the question, so every process
    produces the same text for the same inputs.
    """
    personality = detect_personality(profile_text or "")
    responses = PERSONALITY_RESPONSES[personality] if personality else DEFAULT_RESPONSES
    index = zlib.crc32(question.strip().lower().encode("utf-8")) % len(responses)
    return responses[index]
