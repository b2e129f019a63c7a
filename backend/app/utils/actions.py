# app/utils/actions.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml
from starlette.routing import compile_path

from app.core.config import ACTIONS_PATH
from app.models.activity import ACTIONS, RESOURCE_TYPES

ROLES = ("student", "admin")
IGNORED_METHODS = {"HEAD", "OPTIONS"}


@dataclass(frozen=True)
class ActionRule:
    method: str
    route: str
    action: Optional[str]                  # None = deliberately not logged
    description: str = ""
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None      # value source, see actions.yaml
    title: Optional[str] = None
    count: Optional[str] = None
    regex: Any = None

    def action_for(self, role: str) -> str:
        return self.action.replace("{role}", role)


@dataclass
class ActionMatch:
    action: str
    description: str
    resource_type: Optional[str]
    resource_id: Optional[str]
    route: str


class _Blank(dict):
    def __missing__(self, key):
        return "unknown"


def _dig(data: Any, dotted: str) -> Any:
    cur = data
    for part in dotted.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def resolve_source(source: Optional[str], ctx: Dict[str, Any]) -> Optional[str]:
    """Resolve "body.title|response.data.project.title" against the request context."""
    if not source:
        return None
    for alt in source.split("|"):
        alt = alt.strip()
        scope, _, rest = alt.partition(".")
        val = _dig(ctx.get(scope) or {}, rest) if rest else None
        if val not in (None, ""):
            return str(val)
    return None


class ActionTable:
    """Explicit (method, route template) -> activity action mapping."""

    def __init__(self, rules: Iterable[ActionRule]):
        self.rules: List[ActionRule] = list(rules)
        self._by_key: Dict[Tuple[str, str], ActionRule] = {}
        for r in self.rules:
            key = (r.method, r.route)
            if key in self._by_key:
                raise ValueError(f"Duplicate action rule for {r.method} {r.route}")
            self._by_key[key] = r
        # literal routes win over templated ones
        self._ordered = sorted(self.rules, key=lambda r: "{" in r.route)

    # -------------------------- loading --------------------------

    @classmethod
    def from_dict(cls, data: dict) -> "ActionTable":
        rules = []
        for raw in (data or {}).get("routes") or []:
            method = str(raw["method"]).upper()
            route = "/" + str(raw["route"]).strip("/")
            action = raw.get("action")
            if action is not None:
                expanded = {action.replace("{role}", r) for r in ROLES} if "{role}" in action else {action}
                unknown = expanded - ACTIONS
                if unknown:
                    raise ValueError(f"Unknown activity action(s) {sorted(unknown)} for {method} {route}")
                if not raw.get("description"):
                    raise ValueError(f"Missing description for {method} {route}")
            rtype = raw.get("resource_type")
            if rtype is not None and rtype not in RESOURCE_TYPES:
                raise ValueError(f"Unknown resource type '{rtype}' for {method} {route}")
            regex, _, _ = compile_path(route)
            rules.append(ActionRule(
                method=method,
                route=route,
                action=action,
                description=raw.get("description") or "",
                resource_type=rtype,
                resource_id=raw.get("resource_id"),
                title=raw.get("title"),
                count=raw.get("count"),
                regex=regex,
            ))
        return cls(rules)

    @classmethod
    def from_file(cls, path: Path) -> "ActionTable":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    # -------------------------- lookup --------------------------

    def match(self, method: str, path: str) -> Tuple[Optional[ActionRule], Dict[str, str]]:
        method = method.upper()
        for rule in self._ordered:
            if rule.method != method:
                continue
            m = rule.regex.match(path)
            if m:
                return rule, m.groupdict()
        return None, {}

    def classify(
        self,
        method: str,
        path: str,
        actor: Dict[str, Any],
        body: Optional[dict] = None,
        response: Optional[dict] = None,
    ) -> Optional[ActionMatch]:
        """Map a finished request onto at most one action; None means "don't log"."""
        if not actor:
            return None
        rule, params = self.match(method, path)
        if rule is None or rule.action is None:
            return None
        ctx = {
            "actor": actor,
            "path": params,
            "body": body if isinstance(body, dict) else {},
            "response": response if isinstance(response, dict) else {},
        }
        resource_id = resolve_source(rule.resource_id, ctx)
        values = _Blank(
            first_name=actor.get("first_name") or "Someone",
            resource_id=resource_id or "unknown",
            title=resolve_source(rule.title, ctx) or "untitled",
            count=resolve_source(rule.count, ctx) or "0",
        )
        return ActionMatch(
            action=rule.action_for(actor.get("role") or "student"),
            description=rule.description.format_map(values),
            resource_type=rule.resource_type,
            resource_id=resource_id,
            route=rule.route,
        )

    # -------------------------- startup check --------------------------

    def missing_routes(self, keys: Iterable[Tuple[str, str]]) -> List[str]:
        """(method, path) pairs, relative to the API prefix, that have no rule in the table."""
        return [f"{m} {p}" for m, p in keys if (m, p) not in self._by_key]

    def validate(self, keys: Iterable[Tuple[str, str]]) -> None:
        missing = self.missing_routes(keys)
        if missing:
            raise RuntimeError("Activity action table is missing routes: " + ", ".join(missing))


def route_keys(routes: Iterable[Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    (method, prefix + path) for each endpoint of a router. Pass the APIRouter's own
    routes with the sub-prefix it is included under; the app's route list wraps
    included routers and does not expose their endpoints.
    """
    keys: List[Tuple[str, str]] = []
    for r in routes:
        path = getattr(r, "path", None)
        methods = getattr(r, "methods", None)
        if not path or not methods or not getattr(r, "include_in_schema", True):
            continue
        for m in sorted(set(methods) - IGNORED_METHODS):
            keys.append((m, prefix + path))
    return keys


# cache in memory
_TABLE: Optional[ActionTable] = None

def get_action_table() -> ActionTable:
    global _TABLE
    if _TABLE is None:
        _TABLE = ActionTable.from_file(ACTIONS_PATH)
    return _TABLE
