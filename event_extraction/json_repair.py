"""
Repair and recovery for near-JSON returned by text-generation services.

Models are asked for ``{"events": [...]}`` but regularly answer with fenced
markdown, chatty preambles, truncated output, quoted numbers, missing commas,
or values that contain a colon split into a bogus key/value pair. Parsing is
attempted in stages:

1. the raw string as-is (valid input is returned untouched);
2. trimmed to the outermost braces with code fences removed;
3. whitespace collapsed and the ordered ``REPAIR_RULES`` applied;
4. brackets and a dangling string balanced.

If all of that fails, ``RECOVERY_STRATEGIES`` are tried in order and the first
one that yields at least one event object wins.
"""
from __future__ import annotations

import json
import logging
import re
import typing as t
from dataclasses import dataclass

from event_extraction.classifier import classify


logger = logging.getLogger(__name__)

# Checked in this order when expanding a truncated key.
KNOWN_KEYS = (
    "title", "date", "description", "eventType", "confidence",
    "location", "endDate", "events", "approved", "id",
)
VALUE_KEYS = ("title", "description", "location", "date", "endDate")
TEXT_KEYS = ("title", "description", "location")

_KEYS_ALT = "|".join(KNOWN_KEYS)
_VALUE_KEYS_ALT = "|".join(VALUE_KEYS)
_TEXT_KEYS_ALT = "|".join(TEXT_KEYS)

CLOSERS = {"{": "}", "[": "]"}
CONTEXT_WINDOW = 100
RECOVERED_PAIR_CONFIDENCE = 0.4

FENCE_RE = re.compile(r"```(?:json|JSON)?")


@dataclass(frozen=True)
class RepairRule:
    """A named text transform applied to near-JSON before parsing."""
    name: str
    apply: t.Callable[[str], str]


@dataclass(frozen=True)
class RecoveryStrategy:
    """A named fallback that pulls event objects out of unparseable text."""
    name: str
    recover: t.Callable[[str], t.Optional[list[dict[str, t.Any]]]]


def _sub(pattern: str, replacement: t.Union[str, t.Callable[[re.Match[str]], str]], flags: int = 0):
    compiled = re.compile(pattern, flags)

    def apply(text: str) -> str:
        return compiled.sub(replacement, text)

    return apply


# -- point fixes ------------------------------------------------------------

def _expand_truncated_key(match: re.Match[str]) -> str:
    prefix, word = match.group(1), match.group(2)
    if word in KNOWN_KEYS:
        return match.group(0)
    lowered = word.lower()
    following = match.string[match.end():match.end() + 8].lstrip(" :")
    candidates = [key for key in KNOWN_KEYS if key.lower().startswith(lowered) and len(key) > len(word)]
    if following.startswith("[") and "events" in candidates:
        return f'{prefix}"events"'
    for key in candidates:
        if key != "events":
            return f'{prefix}"{key}"'
    return match.group(0)


def join_split_value(left: str, right: str) -> str:
    """Rejoin a value a model split at a colon into a key and a value."""
    left, right = left.strip(), right.strip()
    if left[-1:].isdigit() and right[:1].isdigit():
        return f"{left}:{right}"          # 11 / 59 PM
    if right[:1].isdigit():
        return f"{left} {right}"          # Room / 203, CS / 301
    return f"{left}: {right}"


def _rejoin_flat(match: re.Match[str]) -> str:
    return f'{match.group(1)}"{join_split_value(match.group(2), match.group(3))}"'


def _rejoin_nested(match: re.Match[str]) -> str:
    return f'{match.group(1)}"{join_split_value(match.group(2), match.group(3))}"'


_INNER_QUOTE_VALUE_RE = re.compile(
    rf'("(?:{_TEXT_KEYS_ALT})"\s*:\s*")(.*?)("(?=\s*(?:,\s*"[A-Za-z_]+"\s*:|[}}\]])))'
)


def _escape_inner_quotes(text: str) -> str:
    def escape(match: re.Match[str]) -> str:
        inner = re.sub(r'(?<!\\)"', r'\\"', match.group(2))
        return f"{match.group(1)}{inner}{match.group(3)}"

    return _INNER_QUOTE_VALUE_RE.sub(escape, text)


REPAIR_RULES: tuple[RepairRule, ...] = (
    RepairRule("single_quoted_keys", _sub(r"'([A-Za-z_]+)'\s*:", r'"\1":')),
    RepairRule("single_quoted_values", _sub(r""":\s*'([^'"]*)'(?=\s*[,}\]])""", r': "\1"')),
    RepairRule("unquoted_keys", _sub(rf'([{{,]\s*)({_KEYS_ALT})\s*:', r'\1"\2":')),
    RepairRule("truncated_keys", _sub(r'([{,]\s*|"\s+)"([A-Za-z]{3,})"(?=\s*:)', _expand_truncated_key)),
    RepairRule("quoted_confidence", _sub(r'"confidence"\s*:\s*"\s*(-?\d+(?:\.\d+)?)\s*"', r'"confidence": \1')),
    RepairRule(
        "quoted_booleans",
        _sub(r'"approved"\s*:\s*"(true|false)"', lambda m: f'"approved": {m.group(1).lower()}', re.IGNORECASE),
    ),
    RepairRule(
        "python_literals",
        _sub(r":\s*(True|False|None)(?=\s*[,}\]])",
             lambda m: ": " + {"True": "true", "False": "false", "None": "null"}[m.group(1)]),
    ),
    RepairRule(
        "unquoted_dates",
        _sub(r'("(?:date|endDate)"\s*:\s*)(\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2}(?::\d{2})?)?)(?=\s*[,}\]])', r'\1"\2"'),
    ),
    RepairRule(
        "colon_split_values",
        _sub(rf'("(?:{_VALUE_KEYS_ALT})"\s*:\s*)"([^"]*)"\s*:\s*"([^"]*)"(?=\s*[,}}\]])', _rejoin_flat),
    ),
    RepairRule(
        "colon_split_nested",
        _sub(rf'("(?:{_VALUE_KEYS_ALT})"\s*:\s*)\{{\s*"([^"{{}}]*)"\s*:\s*"?([^"{{}}]*?)"?\s*\}}', _rejoin_nested),
    ),
    RepairRule(
        "colon_split_time",
        _sub(rf'("(?:{_VALUE_KEYS_ALT})"\s*:\s*"[^"]*?\d)"\s*:\s*(\d{{2}}(?:\s*[AaPp]\.?[Mm]\.?)?)"', r'\1:\2"'),
    ),
    RepairRule("adjacent_objects", _sub(r"\}\s*\{", "}, {")),
    RepairRule(
        "missing_commas",
        _sub(rf'("|\d|true|false|null|\]|\}})\s+(?="(?:{_KEYS_ALT})"\s*:)', r"\1, "),
    ),
    RepairRule("inner_quotes", _escape_inner_quotes),
    RepairRule("trailing_commas", _sub(r",\s*([}\]])", r"\1")),
)


def apply_repair_rules(
    text: str, rules: t.Sequence[RepairRule] = REPAIR_RULES
) -> tuple[str, list[str]]:
    """Run ``rules`` in order; return the new text and the names that changed it."""
    fired: list[str] = []
    for rule in rules:
        repaired = rule.apply(text)
        if repaired != text:
            fired.append(rule.name)
            text = repaired
    return text, fired


# -- structural steps ---------------------------------------------------------

def trim_to_payload(text: str) -> str:
    """Cut away commentary before the first ``{`` (or ``[``) and after its last closer."""
    obj, arr = text.find("{"), text.find("[")
    if obj == -1 and arr == -1:
        return text.strip()
    if arr != -1 and (obj == -1 or arr < obj):
        start, closer = arr, "]"
    else:
        start, closer = obj, "}"
    end = text.rfind(closer)
    if end < start:
        return text[start:].strip()
    return text[start:end + 1]


def strip_code_fences(text: str) -> str:
    return FENCE_RE.sub("", text).strip()


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _scan(text: str) -> tuple[str, list[str], int]:
    """
    Walk ``text`` outside of strings, dropping closers that match nothing.

    Returns the cleaned text, the stack of still-open brackets, and the index
    of an unterminated string's opening quote (-1 if every string is closed).
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = escaped = False
    string_start = -1
    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            string_start = len(out)
        elif ch in CLOSERS:
            stack.append(ch)
        elif ch in "}]":
            if not stack or CLOSERS[stack[-1]] != ch:
                continue
            stack.pop()
        out.append(ch)
    return "".join(out), stack, string_start if in_string else -1


def _close_dangling(text: str) -> str:
    text = text.rstrip()
    if text.endswith(","):
        return text[:-1]
    if text.endswith(":"):
        return text + " null"
    if re.search(r'[{,]\s*"[^"]*"$', text):
        return text + ": null"
    return text


def balance_brackets(text: str) -> str:
    """
    Make bracket nesting consistent.

    Unmatched closers are dropped. An unterminated string is closed before
    the run of closing brackets it swallowed (or at the end). Still-open
    brackets are closed in order, after completing a dangling key or colon.
    """
    text, stack, open_string = _scan(text)
    if open_string >= 0:
        body = text[open_string:]
        tail = re.search(r"[}\]\s]*$", body).group(0)
        if tail.strip():
            cut = len(text) - len(tail)
            text = text[:cut].rstrip("\\") + '"' + tail
        else:
            text = text.rstrip().rstrip("\\") + '"'
        text, stack, _ = _scan(text)
    if stack:
        text = _close_dangling(text)
    return text + "".join(CLOSERS[opener] for opener in reversed(stack))


def _loads(text: str) -> t.Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        return None


def parse_json_payload(raw: str) -> t.Any:
    """
    Parse ``raw`` as JSON, repairing it as needed.

    Returns the parsed value, or None when no amount of repair produces
    valid JSON. Already-valid input is parsed directly and never altered.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    value = _loads(raw)
    if value is not None:
        return value

    text = strip_code_fences(trim_to_payload(raw))
    value = _loads(text)
    if value is not None:
        logger.debug("JSON parsed after trimming commentary and code fences")
        return value

    text, fired = apply_repair_rules(collapse_whitespace(text))
    value = _loads(text)
    if value is not None:
        logger.debug("JSON parsed after repair rules: %s", ", ".join(fired) or "none")
        return value

    balanced, more = apply_repair_rules(balance_brackets(text))
    value = _loads(balanced)
    if value is not None:
        logger.debug("JSON parsed after bracket balancing (rules: %s)", ", ".join(fired + more) or "none")
        return value

    logger.debug("JSON repair failed; rules fired: %s", ", ".join(fired + more) or "none")
    return None


def event_dicts(value: t.Any) -> list[dict[str, t.Any]]:
    """Pull event objects out of a parsed response of any reasonable shape."""
    if isinstance(value, list):
        items = value
    elif isinstance(value, dict):
        events = value.get("events")
        if isinstance(events, list):
            items = events
        elif isinstance(events, dict):
            items = [events]
        elif "title" in value:
            items = [value]
        else:
            items = []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]


# -- recovery cascade ------------------------------------------------------------

def _loads_fragment(fragment: str) -> t.Optional[dict[str, t.Any]]:
    value = _loads(fragment)
    if value is None:
        repaired, _ = apply_repair_rules(balance_brackets(fragment))
        value = _loads(repaired)
    return value if isinstance(value, dict) else None


FLAT_OBJECT_RE = re.compile(r'\{[^{}]*"title"\s*:[^{}]*\}')


def recover_flat_objects(text: str) -> t.Optional[list[dict[str, t.Any]]]:
    """Parse every brace-free object that has a "title" key on its own."""
    found = []
    for match in FLAT_OBJECT_RE.finditer(text):
        item = _loads_fragment(match.group(0))
        if item is not None:
            found.append(item)
    return found or None


EVENTS_ARRAY_RE = re.compile(r'"events"\s*:\s*\[')


def recover_events_array(text: str) -> t.Optional[list[dict[str, t.Any]]]:
    """Split the "events" array on ``},{`` and parse each piece re-wrapped in braces."""
    match = EVENTS_ARRAY_RE.search(text)
    if not match:
        return None
    body = text[match.end():]
    end = body.rfind("]")
    if end != -1:
        body = body[:end]

    found = []
    for piece in re.split(r"\}\s*,\s*\{", body):
        piece = piece.strip().strip(",").strip()
        piece = piece.lstrip("{").rstrip("]").rstrip("}").strip()
        if not piece:
            continue
        item = _loads_fragment("{" + piece + "}")
        if item is not None:
            found.append(item)
    return found or None


TITLE_VALUE_RE = re.compile(r'"title"\s*:\s*"([^"]{1,200})"')
DATE_VALUE_RE = re.compile(r'"date"\s*:\s*"?(\d{4}-\d{1,2}-\d{1,2}(?:T\d{2}:\d{2}(?::\d{2})?)?)')


def recover_title_date_pairs(text: str) -> t.Optional[list[dict[str, t.Any]]]:
    """
    Ignore structure and pair each "title" value with the next "date" value.

    The event type comes from the keyword families applied to the text around
    the title (which usually includes the model's own eventType field). The
    window never reaches into the neighbouring titles' objects.
    """
    titles = list(TITLE_VALUE_RE.finditer(text))
    found = []
    for index, match in enumerate(titles):
        stop = titles[index + 1].start() if index + 1 < len(titles) else len(text)
        date_match = DATE_VALUE_RE.search(text, match.end(), stop)
        if not date_match:
            continue
        floor = titles[index - 1].end() if index else 0
        lower = max(floor, match.start() - CONTEXT_WINDOW)
        brace = text.rfind("{", lower, match.start())
        if brace != -1:
            lower = brace
        upper = min(stop, match.end() + CONTEXT_WINDOW)
        if index + 1 < len(titles):
            # stop at the start of the next title's object
            next_brace = text.rfind("{", match.end(), stop)
            if next_brace != -1:
                upper = min(upper, next_brace)
        window = text[lower:upper]
        found.append({
            "title": match.group(1),
            "date": date_match.group(1),
            "eventType": classify(window).event_type,
            "confidence": RECOVERED_PAIR_CONFIDENCE,
        })
    return found or None


RECOVERY_STRATEGIES: tuple[RecoveryStrategy, ...] = (
    RecoveryStrategy("flat_objects", recover_flat_objects),
    RecoveryStrategy("events_array", recover_events_array),
    RecoveryStrategy("title_date_pairs", recover_title_date_pairs),
)


def recover_event_dicts(
    raw: str, strategies: t.Sequence[RecoveryStrategy] = RECOVERY_STRATEGIES
) -> list[dict[str, t.Any]]:
    """
    Return event objects from a generative response, or [] if none survive.

    A response that parses (with or without repair) is used as-is; only an
    unparseable one goes through the recovery cascade.
    """
    value = parse_json_payload(raw)
    if value is not None:
        return event_dicts(value)
    if not isinstance(raw, str):
        return []

    text, _ = apply_repair_rules(collapse_whitespace(strip_code_fences(trim_to_payload(raw))))
    for strategy in strategies:
        recovered = strategy.recover(text)
        if recovered:
            logger.info("Recovered %d event objects with %s", len(recovered), strategy.name)
            return recovered
    logger.info("No event objects recovered from generative response")
    return []
