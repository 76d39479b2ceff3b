"""Script parsing: turns pasted reel scripts into scenes.

A script is a sequence of blocks separated by a line holding only ``---``::

    **SCENE 1**
    **Voiceover:**
    Narration for the first scene.

    **Visual Prompt:**
    What the image should show.

Blocks missing either a voiceover or a visual prompt are skipped.
"""

import re
from typing import List

from .models import Scene

BLOCK_SEPARATOR = re.compile(r"\n---\n")
SCENE_HEADER = re.compile(r"\*\*SCENE (\d+)\*\*")
VOICEOVER_SECTION = re.compile(
    r"\*\*Voiceover:\*\*(.*?)(?=\*\*Visual Prompt:\*\*|\Z)", re.DOTALL
)
VISUAL_PROMPT_SECTION = re.compile(r"\*\*Visual Prompt:\*\*(.*)", re.DOTALL)

SCRIPT_TEMPLATE = """**SCENE 1**
**Voiceover:**
Yo, what's good! You ever scroll your feed and see people living their best life and think, "How can I get a piece of that?" That ain't just for them, it's for you too!

**Visual Prompt:**
A young, stylish person in front of a graffiti wall, looking at their phone with a motivated, inspired expression. Animated dollar signs with wings fly out of the phone.

---

**SCENE 2**
**Voiceover:**
The secret ain't some get-rich-quick scheme. It's about that SIDE HUSTLE! Digital art, blogging, managing social media for local shops. It's all about that passive income!

**Visual Prompt:**
A fast-paced, split-screen montage. On one side, a laptop shows an AI art generator creating images. On the other, a person takes product photos for a small business. Energetic and modern."""


def _section(pattern: re.Pattern, block: str) -> str:
    match = pattern.search(block)
    return match.group(1).strip() if match else ""


def _scene_number(block: str, index: int) -> int:
    match = SCENE_HEADER.search(block)
    if match:
        number = int(match.group(1))
        if number > 0:
            return number
    return index + 1


def parse_script(text: str) -> List[Scene]:
    """Parse a script into scenes, in script order.

    Args:
        text: Raw script text using the ``**SCENE n**`` / ``**Voiceover:**`` /
            ``**Visual Prompt:**`` markers and ``---`` separators.

    Returns:
        One scene per block that has both a voiceover and a visual prompt.
        Scene numbers come from the block header, or the block's position
        when the header is missing. Duplicate numbers are kept as-is.
    """
    text = text.replace("\r\n", "\n").strip()
    if not text:
        return []

    scenes: List[Scene] = []
    for index, block in enumerate(BLOCK_SEPARATOR.split(text)):
        voiceover = _section(VOICEOVER_SECTION, block)
        visual_prompt = _section(VISUAL_PROMPT_SECTION, block)
        if not voiceover or not visual_prompt:
            continue
        scenes.append(
            Scene(
                scene_number=_scene_number(block, index),
                voiceover=voiceover,
                visual_prompt=visual_prompt,
            )
        )
    return scenes
