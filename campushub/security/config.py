"""
Route security rules, loaded from YAML.

    security:
      auth:     {provider, authorization_header, bearer_prefix}
      default:  {auth_required, required_roles, scope}
      routes:
        - path: /students/{student_id}
          methods: [GET]
          required_roles: [admin, teacher]
          scope: [students]

`scope` lists the collections whose SELECTs are restricted to the caller's
visible rows for the whole request.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from campushub.models.school import Role
from campushub.security.visibility import Collection

_PARAM_RE = re.compile(r"\{[^/]+\}")


class AuthConfig(BaseModel):
    provider: str = "demo"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[Role] = Field(default_factory=list)
    scope: list[Collection] = Field(default_factory=list)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    # None means "inherit from default" (or implied by roles/scope).
    auth_required: bool | None = None
    required_roles: list[Role] = Field(default_factory=list)
    scope: list[Collection] | None = None

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Route path must start with '/': {value!r}")
        return value.rstrip("/") or "/"

    @field_validator("methods")
    @classmethod
    def _upper_methods(cls, value: list[str]) -> list[str]:
        return [m.upper() for m in value]

    @property
    def is_template(self) -> bool:
        return bool(_PARAM_RE.search(self.path))


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_duplicate_rules(self) -> SecurityConfigModel:
        seen: set[tuple[str, str]] = set()
        for rule in self.routes:
            for method in rule.methods:
                key = (rule.path, method)
                if key in seen:
                    raise ValueError(f"Duplicate security rule for {method} {rule.path}")
                seen.add(key)
        return self


@dataclass(frozen=True)
class EffectiveRule:
    """Rule for one request after defaults are applied."""

    auth_required: bool
    required_roles: frozenset[Role]
    scope: frozenset[Collection]

    @classmethod
    def from_default(cls, default: DefaultRule) -> EffectiveRule:
        return cls(
            auth_required=default.auth_required,
            required_roles=frozenset(default.required_roles),
            scope=frozenset(default.scope),
        )

    @classmethod
    def from_route(cls, rule: RouteRule, default: DefaultRule) -> EffectiveRule:
        # Role requirements or row scoping imply authentication even if the default is public.
        implied = default.auth_required or bool(rule.required_roles) or bool(rule.scope)
        return cls(
            auth_required=implied if rule.auth_required is None else rule.auth_required,
            required_roles=frozenset(rule.required_roles or default.required_roles),
            scope=frozenset(default.scope if rule.scope is None else rule.scope),
        )


@dataclass(frozen=True)
class _TemplateRoute:
    pattern: re.Pattern[str]
    literal_segments: int
    rule: RouteRule


def _compile_template(rule: RouteRule) -> _TemplateRoute:
    # "/schools/{school_id}/status" -> r"^/schools/[^/]+/status$"
    segments = rule.path.split("/")
    pattern = re.compile("^" + "/".join("[^/]+" if _PARAM_RE.fullmatch(s) else re.escape(s) for s in segments) + "$")
    literals = sum(1 for s in segments if s and not _PARAM_RE.fullmatch(s))
    return _TemplateRoute(pattern=pattern, literal_segments=literals, rule=rule)


class SecurityConfig:
    """
    Validated config plus route matching.

    Lookup order: exact path, then templates (more literal segments first),
    then the default rule.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        self._exact: dict[tuple[str, str], RouteRule] = {}
        templates: list[_TemplateRoute] = []
        for rule in model.routes:
            if rule.is_template:
                templates.append(_compile_template(rule))
                continue
            for method in rule.methods:
                self._exact[(rule.path, method)] = rule
        self._templates = sorted(templates, key=lambda t: t.literal_segments, reverse=True)

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        method = method.upper()
        path = path.rstrip("/") or "/"
        default = self.model.default

        rule = self._exact.get((path, method))
        if rule is None:
            rule = next(
                (t.rule for t in self._templates if method in t.rule.methods and t.pattern.match(path)),
                None,
            )
        if rule is None:
            return EffectiveRule.from_default(default)
        return EffectiveRule.from_route(rule, default)


def load_security_config(path: Path) -> SecurityConfig:
    raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    return SecurityConfig(SecurityConfigModel.model_validate(raw["security"]))
