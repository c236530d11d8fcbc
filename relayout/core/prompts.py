"""
System prompts and few-shot examples for the completion provider.

Few-shot examples for sentence grouping and markdown formatting can be
replaced by files in EXAMPLES_DIR:
  grouped_lines_input.txt / grouped_lines_output.txt
  to_markdown_input.txt / to_markdown_output.txt
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Tuple

logger = logging.getLogger(__name__)

# (user, assistant) pairs replayed before the real payload.
Example = Tuple[str, str]

MARKDOWN_PREFIX = "```markdown\n"
MARKDOWN_SUFFIX = "\n```"


def translate_segments_prompt(language_name: str) -> str:
    return (
        "The user provides a word and an ID for each sentence.\n"
        "You will translate those words and assign an ID based on the translated word. "
        f"Please translate into {language_name}.\n"
        "Each array is one statement. Please translate it naturally into one sentence.\n"
        "If you determine that the object should disappear, do not destroy the object, "
        "but return only the text as an empty string with original ID.\n"
        'The order of ID could be changed, but the ID should never disappear. Example: { "id": 1, "text": "" }\n'
        "Please do not miss special characters, etc.\n"
        "Please only send json responses. Examples include:\n"
        "[\n"
        '[ { "id": 1234, "text": "Translated word" } ],\n'
        '[ { "id": 1122, "text": "Translated word2" } ]\n'
        "]\n"
    )


TRANSLATE_SEGMENTS_EXAMPLES: List[Example] = [
    (
        '[ [ { "id": 1, "text": "밥" }, { "id": 2, "text": "먹으러" }, { "id": 3, "text": "가자" } ] ]',
        '[ [ { "id": 3, "text": "Let\'s" }, { "id": 2, "text": "go" }, { "id": 1, "text": "eat" } ] ]',
    ),
]

GROUP_LINES_PROMPT = (
    "The user provides a list of texts inside each paragraph.\n"
    "Group the texts of each paragraph by sentence. Only merge texts when you are sure they form "
    "one natural sentence once concatenated; otherwise return them individually.\n"
    "There must be no missing text. Answer with the IDs of the user-provided texts only, "
    "in a ```json fenced block, one array per paragraph, one array of IDs per sentence.\n"
    "For example, for the input:\n"
    '[[{ "id": 0, "text": "Reserve a slot in the app" },{ "id": 1, "text": "and ride at the booked time." }],\n'
    '[{ "id": 2, "text": "Opening hours may change." },{ "id": 3, "text": "See the website for details." }],\n'
    '[{ "id": 4, "text": "Park" },{ "id": 5, "text": "Attractions" }]]\n'
    "answer:\n"
    "```json\n"
    "[\n"
    "[ [0, 1] ],\n"
    "[ [2], [3] ],\n"
    "[ [4], [5] ]\n"
    "]\n"
    "```"
)

GROUP_LINES_EXAMPLE: Example = (
    '[[{"id":0,"text":"Please keep your ticket"},{"id":1,"text":"until you leave the venue."}],'
    '[{"id":2,"text":"Entrance"},{"id":3,"text":"Exit"}]]',
    "```json\n[\n[ [0, 1] ],\n[ [2], [3] ]\n]\n```",
)

TO_MARKDOWN_PROMPT = (
    "The user will provide you with some text information extracted from an image, as well as the image itself.\n"
    "I need you to take this information and format it into a neat and tidy markdown document.\n"
    "Please make sure the results are in Markdown format."
)

TO_MARKDOWN_EXAMPLE: Example = (
    "Weekly Schedule\n\nMonday  Tuesday  Wednesday\nGym     Swim     Rest\n",
    MARKDOWN_PREFIX
    + "# Weekly Schedule\n\n| Monday | Tuesday | Wednesday |\n| --- | --- | --- |\n| Gym | Swim | Rest |"
    + MARKDOWN_SUFFIX,
)


def translate_markdown_prompt(language_name: str) -> str:
    return f"The user will provide you with a markdown document. Please translate the markdown document into {language_name}"


def translate_texts_prompt(language_name: str) -> str:
    return (
        f"Translate every value of the JSON object provided by the user into {language_name}. "
        "Keep every key exactly as given and do not add or drop keys. "
        "Respond with the JSON object only."
    )


@dataclass
class Examples:
    grouped_lines: Example = GROUP_LINES_EXAMPLE
    to_markdown: Example = TO_MARKDOWN_EXAMPLE


def _read_pair(examples_dir: str, stem: str, default: Example) -> Example:
    input_path = os.path.join(examples_dir, f"{stem}_input.txt")
    output_path = os.path.join(examples_dir, f"{stem}_output.txt")
    if not (os.path.exists(input_path) and os.path.exists(output_path)):
        return default
    with open(input_path, "r", encoding="utf-8") as f:
        user = f.read()
    with open(output_path, "r", encoding="utf-8") as f:
        assistant = f.read()
    logger.info(f"Loaded {stem} few-shot example from {examples_dir}")
    return (user, assistant)


def _wrap_output(example: Example) -> Example:
    user, assistant = example
    if not assistant.startswith(MARKDOWN_PREFIX):
        assistant = MARKDOWN_PREFIX + assistant.strip("\n") + MARKDOWN_SUFFIX
    return (user, assistant)


def load_examples(examples_dir: str) -> Examples:
    return Examples(
        grouped_lines=_read_pair(examples_dir, "grouped_lines", GROUP_LINES_EXAMPLE),
        to_markdown=_wrap_output(_read_pair(examples_dir, "to_markdown", TO_MARKDOWN_EXAMPLE)),
    )
