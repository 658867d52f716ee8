import pytest

from apisign.signing.policy import (
    BASE_REQUIRED_PATHS,
    BASE_RULES,
    EnvironmentProfile,
    PathRule,
    PolicyEffect,
    PolicyTable,
    exempt,
    policy_for_environment,
    required,
    resolve,
)

EXEMPT = PolicyEffect.EXEMPT
REQUIRED = PolicyEffect.REQUIRED


def test_prefix_matches_on_segments():
    rule = PathRule("/api/company", REQUIRED)
    assert rule.matches("/api/company")
    assert rule.matches("/api/company/5")
    assert not rule.matches("/api/companyx")
    assert not rule.matches("/api")


def test_trailing_slash_in_rule_is_ignored():
    assert PathRule("/api/users/", REQUIRED).matches("/api/users/9")


def test_rule_prefix_must_be_absolute():
    with pytest.raises(ValueError):
        PathRule("api/users", REQUIRED)


def test_required_beats_broader_exempt():
    table = PolicyTable.build(exempt("/api") + required("/api/billing"))
    assert table.resolve("/api/billing/invoices/1") is REQUIRED
    assert table.resolve("/api/other") is EXEMPT


def test_required_beats_exempt_for_same_prefix():
    table = PolicyTable.build(exempt("/api/users") + required("/api/users"))
    assert table.resolve("/api/users") is REQUIRED


def test_narrower_exempt_cannot_carve_out_required_prefix():
    table = PolicyTable.build(required("/api/company") + exempt("/api/company/public"))
    assert table.resolve("/api/company/public") is REQUIRED


def test_unmatched_path_uses_profile_default():
    assert policy_for_environment("production").resolve("/api/reports") is REQUIRED
    assert policy_for_environment("development").resolve("/api/reports") is EXEMPT


def test_query_string_is_ignored_for_matching():
    assert policy_for_environment("production").resolve("/health?verbose=1") is EXEMPT


@pytest.mark.parametrize("environment", ["production", "development", "test"])
@pytest.mark.parametrize("prefix", BASE_REQUIRED_PATHS)
def test_required_paths_hold_in_every_environment(environment, prefix):
    assert resolve(prefix + "/42", environment) is REQUIRED


def test_development_widens_exempt_set():
    assert resolve("/api/survey/12", "production") is REQUIRED
    assert resolve("/api/survey/12", "development") is EXEMPT
    assert resolve("/api/support/tickets", "development") is EXEMPT


def test_base_exemptions_apply_in_production():
    assert resolve("/api/auth/login", "production") is EXEMPT
    assert resolve("/health", "production") is EXEMPT


def test_enforce_pins_production_policy():
    assert resolve("/api/reports", "development", enforce=True) is REQUIRED
    assert policy_for_environment("development", enforce=True) == policy_for_environment("production")


def test_profile_cannot_add_required_rules():
    with pytest.raises(ValueError):
        EnvironmentProfile(name="broken", extra_exempt=required("/api/users"))


def test_profile_keeps_every_base_required_rule():
    for environment in ("production", "development", "test"):
        table = policy_for_environment(environment)
        assert set(BASE_REQUIRED_PATHS) <= set(table.required_prefixes)
        assert set(BASE_RULES) <= set(table.rules)


def test_unknown_environment_is_rejected():
    with pytest.raises(ValueError):
        policy_for_environment("staging-ish")


def test_resolution_is_deterministic():
    assert [resolve("/api/users/1", "development") for _ in range(3)] == [REQUIRED] * 3


def test_has_required_rule_ignores_default_effect():
    table = policy_for_environment("production")
    assert table.has_required_rule("/api/company/5?x=1")
    assert not table.has_required_rule("/api/reports")
    assert table.resolve("/api/reports") is PolicyEffect.REQUIRED
