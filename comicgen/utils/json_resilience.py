import json
import logging
import re
from typing import Any, Callable, Dict, List, Tuple, Type, TypeVar
from pydantic import BaseModel
from comicgen.core.errors import JSONSalvageError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FENCE_PATTERN = re.compile(r"```[A-Za-z]*[ \t]*\r?\n([\s\S]*?)\r?\n?[ \t]*```")


def strip_code_fences(text: str) -> str:
    """Replaces every ```lang ... ``` block with its body."""
    return FENCE_PATTERN.sub(r"\1", text)


def clean_model_json(text: str) -> str:
    """
    Lenient salvage: isolates the outermost JSON value in a model completion.
    Returns "[]" when no bracketed span exists.
    """
    cleaned = strip_code_fences(text or "")

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))

    if starts and end > min(starts):
        return cleaned[min(starts):end + 1].strip()

    logger.warning("clean_model_json: could not find JSON delimiters. Returning empty array.")
    return "[]"


def _scan_outside_strings(text: str, on_char: Callable[[str, int, bool], Tuple[str, int]]) -> str:
    """
    Walks text tracking whether the cursor is inside a JSON string.
    on_char returns (replacement, characters consumed).
    """
    out = []
    in_string = False
    escaped = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            replacement, consumed = on_char(text, i, True)
        else:
            if ch == '"':
                in_string = True
            replacement, consumed = on_char(text, i, False)
        out.append(replacement)
        i += consumed
    return "".join(out)


def _strip_line_comments(text: str) -> str:
    def on_char(src: str, i: int, in_string: bool) -> Tuple[str, int]:
        if not in_string and src.startswith("//", i):
            newline = src.find("\n", i)
            return ("", (newline if newline != -1 else len(src)) - i)
        return (src[i], 1)
    return _scan_outside_strings(text, on_char)


def _escape_control_chars(text: str) -> str:
    controls = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}

    def on_char(src: str, i: int, in_string: bool) -> Tuple[str, int]:
        if in_string and src[i] in controls:
            return (controls[src[i]], 1)
        return (src[i], 1)
    return _scan_outside_strings(text, on_char)


def repair_structure(text: str) -> str:
    """Fixes common structural JSON errors at a raw string level."""
    # 1. Comments the model copied from the example format
    text = _strip_line_comments(text)

    # 2. Trailing commas before closing braces/brackets
    text = re.sub(r',\s*([\]}])', r'\1', text)

    # 3. Missing commas between objects in lists
    text = re.sub(r'}\s*{', '}, {', text)
    text = re.sub(r']\s*\[', '], [', text)

    # 4. Truncated output (unclosed brackets/braces)
    open_braces = text.count('{') - text.count('}')
    open_brackets = text.count('[') - text.count(']')
    if open_braces > 0: text += '}' * open_braces
    if open_brackets > 0: text += ']' * open_brackets

    return text.strip()


def normalize_escapes(text: str) -> str:
    """Rewrites escape sequences JSON does not allow."""
    text = text.replace("\\'", "'")
    text = re.sub(r'\\(?!["\\/bfnrtu])', r'\\\\', text)
    return _escape_control_chars(text)


def salvage_json(text: str) -> Any:
    """
    Strict salvage: tries each strategy in a fixed order and returns the first parsed value.
    Raises JSONSalvageError when all of them fail.
    """
    raw = text or ""
    strategies: List[Tuple[str, Callable[[str], str]]] = [
        ("direct", lambda t: t),
        ("fence-strip", strip_code_fences),
        ("bracket-slice", clean_model_json),
        ("structure-repair", lambda t: repair_structure(clean_model_json(t))),
        ("escape-normalize", lambda t: normalize_escapes(repair_structure(clean_model_json(t)))),
    ]

    for label, strategy in strategies:
        try:
            value = json.loads(strategy(raw))
        except (ValueError, TypeError):
            continue
        if label != "direct":
            logger.debug(f"Recovered JSON using the {label} strategy.")
        return value

    raise JSONSalvageError("Could not recover JSON from model output.", raw_text=raw)


class JSONResilienceAgent:
    """
    Turns free-text model completions into validated Pydantic objects.
    Salvages the JSON value, then maps hallucinated field names back onto the schema.
    """

    def __init__(self):
        self.field_aliases = {
            "character_name": "name",
            "char_name": "name",
            "character": "name",
            "visual_description": "appearance",
            "description": "appearance",
            "look": "appearance",
            "panel_description": "scene",
            "narrative": "scene",
            "narrative_description": "scene",
            "prompt": "image_prompt",
            "image": "image_prompt",
            "image_description": "image_prompt",
            "characters_present": "characters",
            "cast": "characters",
            "composition": "visual_composition",
            "main_character": "main_character_name",
        }

    def _field_keys(self, schema: Type[BaseModel]) -> Dict[str, str]:
        """Lower-cased name or alias -> canonical field name."""
        keys = {}
        for name, field in schema.model_fields.items():
            keys[name.lower()] = name
            if field.alias:
                keys[field.alias.lower()] = name
            choices = getattr(field.validation_alias, "choices", None) or []
            for choice in choices:
                if isinstance(choice, str):
                    keys[choice.lower()] = name
        return keys

    def align_fields(self, data: Any, schema: Type[BaseModel]) -> Any:
        """
        Renames keys onto the schema's field names. Unknown keys are dropped,
        direct matches win over aliases.
        """
        if not isinstance(data, dict):
            return data

        keys = self._field_keys(schema)
        aligned: Dict[str, Any] = {}
        # Direct matches first so an alias never overwrites a real field
        for k, v in data.items():
            target = keys.get(str(k).lower())
            if target:
                aligned[target] = v
        for k, v in data.items():
            lowered = str(k).lower()
            if lowered in keys:
                continue
            target = self.field_aliases.get(lowered)
            if target in schema.model_fields and target not in aligned:
                aligned[target] = v
        return aligned

    def parse_list(self, raw_text: str, schema: Type[T], key: str = None) -> List[T]:
        """
        Parses a JSON array of `schema` objects. When the model wrapped the array in
        an object, `key` (or the first list value) is unwrapped.
        """
        data = salvage_json(raw_text)
        if isinstance(data, dict):
            if key and isinstance(data.get(key), list):
                data = data[key]
            else:
                data = next((v for v in data.values() if isinstance(v, list)), [data])
        if not isinstance(data, list):
            raise JSONSalvageError(f"Expected a JSON array of {schema.__name__}.", raw_text=raw_text)
        return [schema.model_validate(self.align_fields(item, schema)) for item in data if isinstance(item, dict)]
