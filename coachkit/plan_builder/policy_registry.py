"""Planning policy registry.

Resolves a named policy profile from an explicit id or from the setup's
risk tolerance. Profiles are a static, versioned lookup table loaded from
data/policy_profiles.yaml; they are composed by explicit field values only
(no inheritance between profiles) and are never mutated at runtime.

Optional tuning overrides (COACHKIT_POLICY_OVERRIDES_JSON) are merged once
when the table is loaded and produce new validated profile records.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from coachkit.core.settings import get_settings
from coachkit.plan_builder.errors import PolicyRegistryError, UnknownPolicyProfileError
from coachkit.plan_builder.models import DraftPlanSetup

_POLICY_PATH = Path(__file__).parent.parent / "data" / "policy_profiles.yaml"


class WeekMinuteBands(BaseModel):
    """Ratios of the weekly minutes target that bound a week's planned total."""

    model_config = ConfigDict(frozen=True)

    base_min_ratio: float = Field(..., ge=0)
    base_max_ratio: float = Field(..., gt=0)
    constrained_min_ratio: float = Field(..., ge=0)
    constrained_max_ratio: float = Field(..., gt=0)
    beginner_early_min_ratio: float = Field(..., ge=0)
    beginner_early_max_ratio: float = Field(..., gt=0)
    severe_min_ratio: float = Field(..., ge=0)
    severe_max_ratio: float = Field(..., gt=0)


class BeginnerGuardrails(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_cap_minutes: int = Field(..., gt=0)
    window_weeks: int = Field(..., ge=1)


class PolicyProfile(BaseModel):
    """Named bundle of thresholds governing how strictly violations are classified."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: str
    label: str
    description: str
    max_intensity_days_hard_cap: int = Field(..., ge=0, le=7)
    max_doubles_hard_cap: int = Field(..., ge=0, le=7)
    default_recovery_every_n_weeks: int = Field(..., ge=0)
    default_recovery_week_multiplier: float = Field(..., gt=0, le=1)
    week_minute_bands: WeekMinuteBands
    beginner_guardrails: BeginnerGuardrails


@dataclass(frozen=True)
class PolicyRegistry:
    version: str
    default_profile_id: str
    risk_tolerance_profiles: Mapping[str, str]
    profiles: Mapping[str, PolicyProfile]


def _merge_override(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_override(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_overrides(raw: str | None) -> dict[str, dict]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed policy overrides JSON: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Ignoring policy overrides: expected a JSON object keyed by profile id")
        return {}
    return {str(k): v for k, v in parsed.items() if isinstance(v, dict)}


def _apply_overrides(
    profiles: dict[str, PolicyProfile],
    overrides: dict[str, dict],
) -> dict[str, PolicyProfile]:
    result = dict(profiles)
    for profile_id, override in overrides.items():
        profile = result.get(profile_id)
        if profile is None:
            logger.warning(f"Ignoring override for unknown policy profile '{profile_id}'")
            continue
        # id and version are identity, never overridable
        override = {k: v for k, v in override.items() if k not in {"id", "version"}}
        try:
            result[profile_id] = PolicyProfile.model_validate(_merge_override(profile.model_dump(), override))
        except ValidationError as e:
            logger.warning(f"Ignoring invalid override for policy profile '{profile_id}': {e}")
            continue
        logger.info("policy_profile_override_applied", profile_id=profile_id, fields=",".join(sorted(override)))
    return result


@lru_cache(maxsize=1)
def load_policy_registry() -> PolicyRegistry:
    """Load, validate and cache the static policy table.

    Returns:
        PolicyRegistry with read-only mappings

    Raises:
        PolicyRegistryError: If the table is missing or malformed
    """
    if not _POLICY_PATH.exists():
        raise PolicyRegistryError(f"Policy profile table missing: {_POLICY_PATH}")

    with _POLICY_PATH.open() as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or not isinstance(raw.get("profiles"), dict):
        raise PolicyRegistryError("Invalid policy profile table format")

    version = str(raw.get("version", "v1"))
    profiles: dict[str, PolicyProfile] = {}
    for profile_id, fields in raw["profiles"].items():
        if not isinstance(fields, dict):
            raise PolicyRegistryError(f"Invalid policy profile entry '{profile_id}'")
        try:
            profiles[profile_id] = PolicyProfile.model_validate({**fields, "id": profile_id, "version": version})
        except ValidationError as e:
            raise PolicyRegistryError(f"Invalid policy profile '{profile_id}': {e}") from e

    default_profile_id = str(raw.get("default_profile_id", ""))
    if default_profile_id not in profiles:
        raise PolicyRegistryError(f"Default policy profile '{default_profile_id}' is not defined")

    risk_map = {str(k): str(v) for k, v in (raw.get("risk_tolerance_profiles") or {}).items()}
    for risk, profile_id in risk_map.items():
        if profile_id not in profiles:
            raise PolicyRegistryError(f"Risk tolerance '{risk}' maps to unknown profile '{profile_id}'")

    profiles = _apply_overrides(profiles, _parse_overrides(get_settings().policy_overrides_json))

    logger.debug("policy_registry_loaded", version=version, profile_count=len(profiles))

    return PolicyRegistry(
        version=version,
        default_profile_id=default_profile_id,
        risk_tolerance_profiles=MappingProxyType(risk_map),
        profiles=MappingProxyType(profiles),
    )


def list_policy_profiles() -> list[PolicyProfile]:
    return list(load_policy_registry().profiles.values())


def get_policy_profile(profile_id: str) -> PolicyProfile:
    """Strict lookup of a policy profile by id.

    Raises:
        UnknownPolicyProfileError: If the id is not registered
    """
    profile = load_policy_registry().profiles.get(profile_id)
    if profile is None:
        raise UnknownPolicyProfileError(f"Unknown policy profile: {profile_id}")
    return profile


def resolve_policy_profile(
    policy_profile_id: str | None = None,
    risk_tolerance: str | None = None,
) -> PolicyProfile:
    """Resolve the profile that governs a setup.

    Precedence:
    1. Explicit, registered policy_profile_id
    2. Profile mapped from risk_tolerance
    3. Registry default (safe baseline)

    Args:
        policy_profile_id: Optional explicit profile id
        risk_tolerance: Optional risk tolerance (low, med, high)

    Returns:
        Resolved PolicyProfile
    """
    registry = load_policy_registry()

    explicit = (policy_profile_id or "").strip()
    if explicit:
        profile = registry.profiles.get(explicit)
        if profile is not None:
            return profile
        logger.warning(f"Unknown policy profile '{explicit}', inferring from risk tolerance")

    if risk_tolerance:
        mapped = registry.risk_tolerance_profiles.get(str(risk_tolerance))
        if mapped:
            return registry.profiles[mapped]

    return registry.profiles[registry.default_profile_id]


def resolve_policy_profile_for_setup(setup: DraftPlanSetup) -> PolicyProfile:
    return resolve_policy_profile(setup.policy_profile_id, setup.risk_tolerance)


def apply_policy_profile_to_setup(setup: DraftPlanSetup) -> DraftPlanSetup:
    """Stamp the resolved profile onto a setup and clamp limits to its hard caps.

    Recovery cadence and multiplier fall back to the profile defaults when
    the setup does not set them.
    """
    profile = resolve_policy_profile_for_setup(setup)
    return setup.model_copy(
        update={
            "policy_profile_id": profile.id,
            "policy_profile_version": profile.version,
            "max_intensity_days_per_week": max(0, min(profile.max_intensity_days_hard_cap, setup.max_intensity_days_per_week)),
            "max_doubles_per_week": max(0, min(profile.max_doubles_hard_cap, setup.max_doubles_per_week)),
            "recovery_every_n_weeks": (
                setup.recovery_every_n_weeks
                if setup.recovery_every_n_weeks is not None
                else profile.default_recovery_every_n_weeks
            ),
            "recovery_week_multiplier": (
                setup.recovery_week_multiplier
                if setup.recovery_week_multiplier is not None
                else profile.default_recovery_week_multiplier
            ),
        }
    )
