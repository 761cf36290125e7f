"""Prompt builders for the persona simulation."""

LANGUAGE_NAMES = {
    "es": "Spanish",
    "en": "English",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
}

IMAGE_STYLE_SUFFIX = (
    "photorealistic, hyperrealistic, 8k resolution, cinematic lighting, detailed textures, "
    "photography style, depth of field, masterpiece, volumetric fog, sharp focus"
)


def language_name(language: str) -> str:
    """Return the English name of a language code, defaulting to Spanish."""
    return LANGUAGE_NAMES.get((language or "").lower(), "Spanish")


def persona_system_prompt(character: str, era: str, language: str) -> str:
    """Return the system prompt that makes the model embody `character` in `era`."""
    target_lang = language_name(language)
    return f"""SIMULATION PARAMETERS:
TARGET CHARACTER: {character}
TARGET DATE: {era}
TARGET LANGUAGE: {target_lang}

You are a high-fidelity historical simulation. EMBODY {character} strictly as they were in {era}.

1. LANGUAGE: Speak in {target_lang}. If the user speaks another language, adapt or act confused.
2. AUTHENTICITY: Use the vocabulary, tone, and worldview of the era. No modern slang.
3. REACTION: The user is an anomaly in your timeline. React with confusion, intrigue, or hostility
   based on your status and personality.
4. IMMERSION: Never break character. Never admit to being an AI.

At the end of EVERY response emit two hidden tags for the interface:

[[SCENE: an English prompt for a photorealistic image model describing the current moment]]
[[CONTEXT: Location | Specific Date | Time]] (translated to {target_lang})

Example:
"Who are you? How did you enter my tent?"
[[SCENE: A cinematic close-up of Napoleon inside a military tent, 1805, candle light, suspicious expression]]
[[CONTEXT: Austerlitz Encampment | December 1, 1805 | 11:45 PM]]
"""


def greeting_prompt(character: str, era: str) -> str:
    """Return the opening turn that makes the persona react to the visitor."""
    return (
        "(SYSTEM: Anomaly detected. A user from the future has appeared. "
        f"React with shock and authentic confusion as {character} in {era}.)"
    )


def enhance_scene_prompt(prompt: str) -> str:
    """Append the photographic style keywords to a scene prompt."""
    return f"{prompt.strip()}, {IMAGE_STYLE_SUFFIX}"


def lifespan_prompt(character: str) -> str:
    return (
        f'Information about historical figure: "{character}". '
        "Report birth year (negative for BC), death year (current year if alive) "
        "and gender (MALE or FEMALE). Set known=false if the figure is unknown or fictional."
    )
