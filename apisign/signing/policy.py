"""Per-route signature policy.

A ``PolicyTable`` is built once at startup from the base rules plus the
environment profile's extra exemptions, then only read. Relaxed profiles may
add ``Exempt`` rules and flip the default for unmatched paths; they can never
drop or weaken a ``Required`` rule.
"""
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterable, Tuple


class PolicyEffect(str, Enum):
    EXEMPT = "Exempt"
    REQUIRED = "Required"


@dataclass(frozen=True)
class PathRule:
    prefix: str
    effect: PolicyEffect

    def __post_init__(self):
        if not self.prefix.startswith("/"):
            raise ValueError(f"policy prefix must start with '/': {self.prefix!r}")

    @property
    def normalized(self) -> str:
        return self.prefix.rstrip("/") or "/"

    def matches(self, path: str) -> bool:
        """Segment-aware match: /api/company matches /api/company/5, not /api/companyx."""
        prefix = self.normalized
        if prefix == "/":
            return True
        return path == prefix or path.startswith(prefix + "/")


def exempt(*prefixes: str) -> Tuple[PathRule, ...]:
    return tuple(PathRule(p, PolicyEffect.EXEMPT) for p in prefixes)


def required(*prefixes: str) -> Tuple[PathRule, ...]:
    return tuple(PathRule(p, PolicyEffect.REQUIRED) for p in prefixes)


@dataclass(frozen=True)
class EnvironmentProfile:
    name: str
    extra_exempt: Tuple[PathRule, ...] = ()
    default_effect: PolicyEffect = PolicyEffect.REQUIRED

    def __post_init__(self):
        for rule in self.extra_exempt:
            if rule.effect is not PolicyEffect.EXEMPT:
                raise ValueError(
                    f"profile {self.name!r} may only add Exempt rules, got {rule.effect.value} for {rule.prefix}"
                )


@dataclass(frozen=True)
class PolicyTable:
    rules: Tuple[PathRule, ...]
    default_effect: PolicyEffect = PolicyEffect.REQUIRED

    @classmethod
    def build(cls, base_rules: Iterable[PathRule], profile: EnvironmentProfile = None) -> "PolicyTable":
        rules = tuple(base_rules)
        default = PolicyEffect.REQUIRED
        if profile is not None:
            rules = rules + tuple(profile.extra_exempt)
            default = profile.default_effect
        return cls(rules=rules, default_effect=default)

    @property
    def required_prefixes(self) -> Tuple[str, ...]:
        return tuple(r.normalized for r in self.rules if r.effect is PolicyEffect.REQUIRED)

    def has_required_rule(self, path: str) -> bool:
        """True when an explicit Required rule covers the path, whatever the default."""
        path = path.split("?", 1)[0]
        return any(rule.effect is PolicyEffect.REQUIRED and rule.matches(path) for rule in self.rules)

    def resolve(self, path: str) -> PolicyEffect:
        path = path.split("?", 1)[0]
        matched = [rule for rule in self.rules if rule.matches(path)]
        if not matched:
            return self.default_effect
        if any(rule.effect is PolicyEffect.REQUIRED for rule in matched):
            return PolicyEffect.REQUIRED
        return PolicyEffect.EXEMPT


# Public and session-only endpoints
BASE_EXEMPT_PATHS = (
    "/api/login",
    "/api/logout",
    "/api/register",
    "/api/auth/login",
    "/api/auth/logout",
    "/api/auth/register",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/auth/csrf-token",
    "/api/auth/me",
    "/api/survey/start",
    "/api/survey/answer",
    "/api/survey/complete",
    "/api/survey/questions",
    "/api/system/performance",
    "/api/demo-request",
    "/api/templates",
    "/api/newsletter",
    "/api/cookie-consent",
    "/health",
)

# Sensitive endpoints: always signed, in every environment
BASE_REQUIRED_PATHS = (
    "/api/company",
    "/api/invoices",
    "/api/users",
    "/api/roles",
    "/api/surveys",
)

BASE_RULES = exempt(*BASE_EXEMPT_PATHS) + required(*BASE_REQUIRED_PATHS)

PROFILES: Dict[str, EnvironmentProfile] = {
    "production": EnvironmentProfile(name="production"),
    "development": EnvironmentProfile(
        name="development",
        extra_exempt=exempt("/api/survey", "/api/support"),
        default_effect=PolicyEffect.EXEMPT,
    ),
    "test": EnvironmentProfile(
        name="test",
        extra_exempt=exempt("/api/survey", "/api/support"),
        default_effect=PolicyEffect.EXEMPT,
    ),
}


@lru_cache(maxsize=None)
def policy_for_environment(
    environment: str,
    enforce: bool = False,
    base_rules: Iterable[PathRule] = BASE_RULES,
) -> PolicyTable:
    """Policy table for a deployment environment. ``enforce`` pins the production profile."""
    environment = environment.lower()
    if enforce:
        environment = "production"
    try:
        profile = PROFILES[environment]
    except KeyError:
        raise ValueError(f"unknown environment {environment!r}; expected one of {sorted(PROFILES)}")
    return PolicyTable.build(base_rules, profile)


def resolve(path: str, environment: str, enforce: bool = False) -> PolicyEffect:
    return policy_for_environment(environment, enforce=enforce).resolve(path)
