"""Turn JSON request payloads into quote inputs."""
from __future__ import annotations

from typing import Any

from .catalog import get_country
from .domain_models import InstallationSelection, StreamingInput, TvInput


def _require_mapping(value: Any, field_name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object.")
    return value


def _require_str(value: Any, field_name: str) -> str:
    if value is None or value == "":
        raise ValueError(f"{field_name} is required.")
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string.")
    return value.strip()


def _require_int(value: Any, field_name: str) -> int:
    if value is None or value == "":
        raise ValueError(f"{field_name} is required.")
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a whole number.")
    if isinstance(value, float) and not value.is_integer():
        # also rejects inf and nan
        raise ValueError(f"{field_name} must be a whole number.")
    if isinstance(value, str) and not value.strip().isdigit():
        raise ValueError(f"{field_name} must be a whole number.")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"{field_name} must be a whole number.") from exc


def _optional_bool(value: Any, field_name: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"{field_name} must be true or false.")
    return value


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None or value == "":
        return None
    return _require_str(value, field_name)


def parse_installation(payload: Any, field_name: str = "installation") -> InstallationSelection:
    data = _require_mapping(payload, field_name)
    return InstallationSelection(
        type=_require_str(data.get("type"), f"{field_name}.type"),
        firestick_id=_optional_str(data.get("firestick_id"), f"{field_name}.firestick_id"),
        standalone=_optional_bool(data.get("standalone"), f"{field_name}.standalone"),
    )


def parse_tv_input(payload: Any) -> TvInput:
    """Build a :class:`TvInput`; ``country_code`` wins over ``country_tier``."""

    data = _require_mapping(payload, "tv")
    country_code = _optional_str(data.get("country_code"), "tv.country_code")
    if country_code is not None:
        country_tier = get_country(country_code).tier
    else:
        country_tier = _require_str(data.get("country_tier"), "tv.country_tier")

    return TvInput(
        plan_id=_require_str(data.get("plan_id"), "tv.plan_id"),
        country_tier=country_tier,
        is_pro=_optional_bool(data.get("is_pro"), "tv.is_pro"),
        duration_months=_require_int(data.get("duration_months", 1), "tv.duration_months"),
        installation=parse_installation(data.get("installation"), "tv.installation"),
        country_code=country_code,
    )


def parse_streaming_input(payload: Any) -> StreamingInput:
    data = _require_mapping(payload, "streaming")
    billing = _require_str(data.get("billing", "monthly"), "streaming.billing")
    if billing not in ("monthly", "yearly"):
        raise ValueError("streaming.billing must be 'monthly' or 'yearly'.")

    return StreamingInput(
        plan_id=_require_str(data.get("plan_id"), "streaming.plan_id"),
        billing=billing,
        vpn_enabled=_optional_bool(data.get("vpn_enabled"), "streaming.vpn_enabled"),
        installation=parse_installation(data.get("installation"), "streaming.installation"),
    )


__all__ = ["parse_installation", "parse_streaming_input", "parse_tv_input"]
