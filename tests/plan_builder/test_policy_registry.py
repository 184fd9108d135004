"""Tests for the planning policy registry."""

import json

import pytest
from pydantic import ValidationError

from coachkit.plan_builder import policy_registry
from coachkit.plan_builder.errors import PolicyRegistryError, UnknownPolicyProfileError
from coachkit.plan_builder.models import DraftPlanSetup
from coachkit.plan_builder.policy_registry import (
    apply_policy_profile_to_setup,
    get_policy_profile,
    list_policy_profiles,
    load_policy_registry,
    resolve_policy_profile,
)


def test_registry_lists_three_versioned_profiles() -> None:
    """The static table ships conservative, safe and performance profiles."""
    profiles = list_policy_profiles()

    assert [p.id for p in profiles] == [
        "coachkit-conservative-v1",
        "coachkit-safe-v1",
        "coachkit-performance-v1",
    ]
    assert all(p.version == "v1" for p in profiles)


def test_profiles_get_looser_from_conservative_to_performance() -> None:
    """Hard caps grow with the performance bias."""
    conservative = get_policy_profile("coachkit-conservative-v1")
    safe = get_policy_profile("coachkit-safe-v1")
    performance = get_policy_profile("coachkit-performance-v1")

    assert conservative.max_intensity_days_hard_cap < safe.max_intensity_days_hard_cap
    assert safe.max_intensity_days_hard_cap < performance.max_intensity_days_hard_cap
    assert conservative.beginner_guardrails.window_weeks == 4
    assert performance.beginner_guardrails.run_cap_minutes == 45


def test_get_policy_profile_unknown_id() -> None:
    """Strict lookup raises for unregistered ids."""
    with pytest.raises(UnknownPolicyProfileError, match="Unknown policy profile"):
        get_policy_profile("coachkit-reckless-v1")


@pytest.mark.parametrize(
    ("profile_id", "risk", "expected"),
    [
        (None, "low", "coachkit-conservative-v1"),
        (None, "med", "coachkit-safe-v1"),
        (None, "high", "coachkit-safe-v1"),
        (None, None, "coachkit-safe-v1"),
        ("coachkit-performance-v1", "low", "coachkit-performance-v1"),
        ("coachkit-unknown-v9", "low", "coachkit-conservative-v1"),
        ("   ", None, "coachkit-safe-v1"),
    ],
)
def test_resolve_policy_profile_precedence(profile_id, risk, expected) -> None:
    """Explicit id, then risk tolerance, then the safe default."""
    assert resolve_policy_profile(profile_id, risk).id == expected


def test_apply_policy_profile_clamps_to_hard_caps() -> None:
    """Setup limits are clamped and the profile stamped on the setup."""
    setup = DraftPlanSetup(risk_tolerance="low", max_intensity_days_per_week=3, max_doubles_per_week=2)

    applied = apply_policy_profile_to_setup(setup)

    assert applied.policy_profile_id == "coachkit-conservative-v1"
    assert applied.policy_profile_version == "v1"
    assert applied.max_intensity_days_per_week == 1
    assert applied.max_doubles_per_week == 0
    assert applied.recovery_every_n_weeks == 3
    assert applied.recovery_week_multiplier == pytest.approx(0.8)


def test_apply_policy_profile_keeps_explicit_recovery_settings() -> None:
    """Recovery defaults only fill what the setup leaves unset."""
    setup = DraftPlanSetup(risk_tolerance="med", recovery_every_n_weeks=0, recovery_week_multiplier=0.9)

    applied = apply_policy_profile_to_setup(setup)

    assert applied.recovery_every_n_weeks == 0
    assert applied.recovery_week_multiplier == pytest.approx(0.9)


def test_profiles_are_immutable() -> None:
    """Profile records cannot be mutated at runtime."""
    profile = get_policy_profile("coachkit-safe-v1")

    with pytest.raises(ValidationError):
        profile.max_doubles_hard_cap = 5  # type: ignore[misc]

    with pytest.raises(TypeError):
        load_policy_registry().profiles["coachkit-safe-v1"] = profile  # type: ignore[index]


def test_overrides_merge_into_new_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    """Env overrides replace only the fields they name."""
    monkeypatch.setenv(
        "COACHKIT_POLICY_OVERRIDES_JSON",
        json.dumps(
            {
                "coachkit-safe-v1": {
                    "max_doubles_hard_cap": 2,
                    "week_minute_bands": {"severe_min_ratio": 0.3},
                }
            }
        ),
    )

    profile = get_policy_profile("coachkit-safe-v1")

    assert profile.max_doubles_hard_cap == 2
    assert profile.week_minute_bands.severe_min_ratio == pytest.approx(0.3)
    assert profile.week_minute_bands.base_min_ratio == pytest.approx(0.5)


def test_invalid_overrides_are_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    """Overrides that fail validation leave the profile unchanged."""
    monkeypatch.setenv(
        "COACHKIT_POLICY_OVERRIDES_JSON",
        json.dumps(
            {
                "coachkit-safe-v1": {"max_doubles_hard_cap": 99},
                "coachkit-missing-v1": {"max_doubles_hard_cap": 1},
                "coachkit-performance-v1": {"id": "hijacked", "version": "v9"},
            }
        ),
    )

    assert get_policy_profile("coachkit-safe-v1").max_doubles_hard_cap == 1
    performance = get_policy_profile("coachkit-performance-v1")
    assert performance.id == "coachkit-performance-v1"
    assert performance.version == "v1"


def test_malformed_override_json_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unparseable override JSON does not break the registry."""
    monkeypatch.setenv("COACHKIT_POLICY_OVERRIDES_JSON", "{not json")

    assert get_policy_profile("coachkit-safe-v1").max_doubles_hard_cap == 1


def test_missing_policy_table(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """A missing table is a registry error."""
    monkeypatch.setattr(policy_registry, "_POLICY_PATH", tmp_path / "missing.yaml")

    with pytest.raises(PolicyRegistryError, match="missing"):
        load_policy_registry()


def test_malformed_policy_table(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """A table without a profiles mapping is a registry error."""
    path = tmp_path / "policy_profiles.yaml"
    path.write_text("- just\n- a list\n")
    monkeypatch.setattr(policy_registry, "_POLICY_PATH", path)

    with pytest.raises(PolicyRegistryError, match="Invalid policy profile table format"):
        load_policy_registry()


def test_unknown_default_profile(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """The default profile id must name a defined profile."""
    path = tmp_path / "policy_profiles.yaml"
    path.write_text("version: v1\ndefault_profile_id: nope\nprofiles: {}\n")
    monkeypatch.setattr(policy_registry, "_POLICY_PATH", path)

    with pytest.raises(PolicyRegistryError, match="Default policy profile 'nope'"):
        load_policy_registry()
