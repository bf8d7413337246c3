from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union


_APL_LINE = re.compile(r"^actions(?:\.(\w+))?\+?=/?(.*)$")
_VARIABLE_REF = re.compile(r"\bvariable\.(\w+)")

CONTROL_FLOW_KEYWORDS = {"run_action_list", "call_action_list"}


@dataclass
class Action:
    element: str
    modifiers: dict[str, str] = field(default_factory=dict)

    @property
    def condition(self) -> str:
        return self.modifiers.get("if", "")


@dataclass
class Variable:
    modifiers: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.modifiers.get("name", "")

    @property
    def condition(self) -> str:
        return self.modifiers.get("if", "")


@dataclass
class ControlFlow:
    keyword: str
    modifiers: dict[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        return self.modifiers.get("name", "")

    @property
    def condition(self) -> str:
        return self.modifiers.get("if", "")


@dataclass
class Comment:
    text: str = ""


Entry = Union[Action, Variable, ControlFlow, Comment]


@dataclass
class ActionList:
    name: str
    entries: list[Entry] = field(default_factory=list)


@dataclass
class RawSection:
    lines: list[str] = field(default_factory=list)


@dataclass
class ActionScript:
    sections: list[ActionList | RawSection] = field(default_factory=list)

    def get_list(self, name: str) -> ActionList | None:
        for action_list in lists_of(self):
            if action_list.name == name:
                return action_list
        return None


@dataclass
class ActionLocation:
    list_name: str
    index: int
    entry: Action | Variable


def _split_modifiers(content: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for ch in content:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if current:
        parts.append("".join(current))
    return parts


def _parse_entry(content: str) -> Entry | None:
    if not content or not content.strip():
        return None

    parts = _split_modifiers(content.strip())
    head = parts[0].strip()
    modifiers: dict[str, str] = {}
    for part in parts[1:]:
        key, sep, value = part.partition("=")
        modifiers[key.strip()] = value if sep else ""

    if head == "variable":
        return Variable(modifiers=modifiers)
    if head in CONTROL_FLOW_KEYWORDS:
        return ControlFlow(keyword=head, modifiers=modifiers)
    return Action(element=head, modifiers=modifiers)


def parse(text: str) -> ActionScript:
    """Parse action priority list text into an ``ActionScript``.

    ``actions=``/``actions+=/`` lines go to the ``default`` list and
    ``actions.<name>...`` lines to ``<name>``. Comments and blank lines inside a
    list context are kept as ``Comment`` entries so entry indices match the
    source layout. Every other line is kept verbatim in a ``RawSection``.
    """
    script = ActionScript()
    lists: dict[str, ActionList] = {}
    current_raw: RawSection | None = None
    last_list: ActionList | None = None

    def ensure_raw() -> RawSection:
        nonlocal current_raw
        if current_raw is None:
            current_raw = RawSection()
            script.sections.append(current_raw)
        return current_raw

    for raw_line in str(text or "").splitlines():
        line = raw_line.rstrip()

        match = _APL_LINE.match(line)
        if match:
            name = match.group(1) or "default"
            action_list = lists.get(name)
            if action_list is None:
                action_list = ActionList(name=name)
                lists[name] = action_list
                script.sections.append(action_list)
                current_raw = None
            entry = _parse_entry(match.group(2))
            if entry is not None:
                action_list.entries.append(entry)
            last_list = action_list
            continue

        if line.startswith("#"):
            if last_list is not None:
                last_list.entries.append(Comment(text=line[1:].lstrip()))
            else:
                ensure_raw().lines.append(line)
            continue

        if not line.strip():
            if last_list is not None:
                last_list.entries.append(Comment(text=""))
            else:
                ensure_raw().lines.append(line)
            continue

        last_list = None
        current_raw = None
        ensure_raw().lines.append(line)

    return script


def lists_of(script: ActionScript) -> list[ActionList]:
    return [section for section in script.sections if isinstance(section, ActionList)]


def locate(script: ActionScript, element: str) -> list[ActionLocation]:
    """Find every entry named ``element``, in list order then index order.

    Actions match on their element identifier; variable assignments match on
    their ``name`` modifier.
    """
    hits: list[ActionLocation] = []
    for action_list in lists_of(script):
        for index, entry in enumerate(action_list.entries):
            if isinstance(entry, Action) and entry.element == element:
                hits.append(ActionLocation(list_name=action_list.name, index=index, entry=entry))
            elif isinstance(entry, Variable) and entry.name and entry.name == element:
                hits.append(ActionLocation(list_name=action_list.name, index=index, entry=entry))
    return hits


def locate_in_list(script: ActionScript, list_name: str, element: str) -> list[ActionLocation]:
    return [hit for hit in locate(script, element) if hit.list_name == list_name]


def variable_references(expression: str) -> set[str]:
    return set(_VARIABLE_REF.findall(str(expression or "")))
