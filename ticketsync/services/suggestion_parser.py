"""
Bot output parsing

The suggestion producer writes free text. These functions turn the latest
`bot_output` entry of a ticket into a list of reply suggestions and a list of
context tags. They are pure and never raise on malformed data; anything that
cannot be used is skipped and logged.

Suggestions:
    - a string is split on newlines, a list keeps its string elements
    - each line is trimmed, then `Suggestion <LETTER>:` and `<digits>.` prefixes
      are stripped; blank results are dropped

Context tags, in order of precedence:
    1. `[a,b]` bracket list, split on commas, camelCase spaced (`fooBar` -> `foo Bar`)
    2. `Priority: <value>` adds a `Priority: <value>` tag unless already present
    3. otherwise, with no bracket list, a comma-separated string is split on commas
    4. otherwise a non-empty string not starting with `priority:` is one tag
    5. the first `priority:` tag is moved to the front
"""
import json
import re
from typing import Any, Dict, List, Optional

from ticketsync.models.schemas import BotOutputEntry, SuggestionSet
from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

SUGGESTION_LABEL_PREFIX = re.compile(r"^Suggestion\s+[A-Z]:\s*", re.IGNORECASE)
ENUMERATION_PREFIX = re.compile(r"^\d+\.\s*")
BRACKET_LIST = re.compile(r"\[(.*?)\]")
PRIORITY = re.compile(r"Priority:\s*(.*)", re.IGNORECASE)
CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")

SUGGESTIONS_FIELD = "agent_script_suggestions_block"
TAGS_FIELD = "context_tags"


def _preview(value: Any, limit: int = 100) -> str:
    if isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
    else:
        text = str(value)
    return text[:limit] + "..."


def clean_suggestion(line: str) -> str:
    """Trim a suggestion line and strip its label and enumeration prefixes"""
    text = line.strip()
    while True:
        stripped = ENUMERATION_PREFIX.sub("", SUGGESTION_LABEL_PREFIX.sub("", text, count=1), count=1).strip()
        if stripped == text:
            return text
        text = stripped


def parse_suggestions(source: Any, ticket_id: Optional[str] = None) -> List[str]:
    """
    Split the suggestions field of a bot output entry.

    Args:
        source: String (newline separated) or list of strings
        ticket_id: Only used for diagnostics

    Returns:
        Cleaned, non-empty suggestions in source order
    """
    if isinstance(source, str):
        lines = source.split("\n")
    elif isinstance(source, list):
        lines = [item for item in source if isinstance(item, str)]
    else:
        logger.warning(
            f"'{SUGGESTIONS_FIELD}' for ticket {ticket_id} was expected to be a string "
            f"or an array of strings, but found type '{type(source).__name__}'. "
            f"Value preview: {_preview(source)}"
        )
        return []

    suggestions = []
    for line in lines:
        if not line.strip():
            continue
        cleaned = clean_suggestion(line)
        if cleaned:
            suggestions.append(cleaned)
    return suggestions


def space_camel_case(tag: str) -> str:
    """`CardIssue` -> `Card Issue`"""
    return CAMEL_BOUNDARY.sub(r"\1 \2", tag)


def _split_tags(text: str) -> List[str]:
    tags = []
    for part in text.split(","):
        tag = space_camel_case(part.strip())
        if tag:
            tags.append(tag)
    return tags


def parse_context_tags(tags_string: Any) -> List[str]:
    """
    Turn a free-text context tags string into an ordered tag list.

    The priority tag, when present, is always first.
    """
    if not isinstance(tags_string, str):
        return []

    tags: List[str] = []

    bracket_match = BRACKET_LIST.search(tags_string)
    if bracket_match and bracket_match.group(1):
        tags.extend(_split_tags(bracket_match.group(1)))

    priority_match = PRIORITY.search(tags_string)
    if priority_match and priority_match.group(1).strip():
        priority_tag = f"Priority: {priority_match.group(1).strip()}"
        if not any(tag.lower() == priority_tag.lower() for tag in tags):
            tags.append(priority_tag)
    elif bracket_match is None and "," in tags_string and "[" not in tags_string:
        tags.extend(_split_tags(tags_string))
    elif (
        bracket_match is None
        and tags_string.strip()
        and not tags_string.lower().startswith("priority:")
    ):
        tags.append(space_camel_case(tags_string.strip()))

    for index, tag in enumerate(tags):
        if tag.lower().startswith("priority:"):
            tags.insert(0, tags.pop(index))
            break

    return tags


def latest_entry_key(bot_output: Any) -> Optional[str]:
    """Greatest key of the bot output collection (most recent for HH:mm:ss keys)"""
    if not isinstance(bot_output, dict) or not bot_output:
        return None
    return max(bot_output.keys())


def extract_bot_output(bot_output: Any, ticket_id: Optional[str] = None) -> SuggestionSet:
    """
    Parse suggestions and tags from the most recent entry of a `bot_output` node.

    Args:
        bot_output: Value of `tickets/<id>/bot_output` (None when absent)
        ticket_id: Only used for diagnostics

    Returns:
        SuggestionSet, empty when the data is absent or malformed
    """
    latest_key = latest_entry_key(bot_output)
    if latest_key is None:
        logger.info(f"No 'bot_output' entries found for ticket {ticket_id}")
        return SuggestionSet()

    entry: Dict[str, Any] = bot_output.get(latest_key)
    if not isinstance(entry, dict):
        logger.info(
            f"Latest bot_output entry (key: {latest_key}) is missing or malformed for ticket {ticket_id}"
        )
        return SuggestionSet()

    parsed = BotOutputEntry.model_construct(**entry)

    suggestions: List[str] = []
    if SUGGESTIONS_FIELD in parsed.model_fields_set:
        suggestions = parse_suggestions(parsed.agent_script_suggestions_block, ticket_id)
    else:
        logger.info(
            f"No '{SUGGESTIONS_FIELD}' field in the latest bot_output entry for ticket {ticket_id}. "
            f"Entry keys: {sorted(entry.keys())}"
        )

    context_tags: List[str] = []
    if isinstance(parsed.context_tags, str):
        context_tags = parse_context_tags(parsed.context_tags)
    else:
        logger.info(f"No '{TAGS_FIELD}' string in the latest bot_output entry for ticket {ticket_id}")

    return SuggestionSet(suggestions=suggestions, context_tags=context_tags)
