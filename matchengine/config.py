"""
Per-tenant engine configuration with validated system defaults.

A tenant without an override gets DEFAULT_* values at version 0. Updates are
merged onto the current config, the whole result is validated, and only a
fully valid config is written; anything else raises ValidationError with
every problem found and leaves the stored row untouched.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .database import DEFAULT_MAX_ATTEMPTS, MatchEngineConfigRow
from .errors import ValidationError
from .models import SIGNAL_NAMES

DEFAULT_WEIGHTS = {
    "temporal": 0.25,
    "skills": 0.30,
    "sustainability": 0.15,
    "growth": 0.10,
    "trust": 0.10,
    "network": 0.10,
}

DEFAULT_FEATURES = {
    "sport_seasons": True,
    "academic_calendar": True,
    "schedule_matching": True,
    "athletic_transfer": True,
}

WEIGHT_TOLERANCE = 0.01

UPDATABLE_FIELDS = (
    "weights",
    "score_floor",
    "max_results",
    "precision",
    "batch_size",
    "max_attempts",
    "features",
)


@dataclass(frozen=True)
class MatchEngineConfig:
    tenant_id: Optional[str] = None
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    score_floor: float = 20.0
    max_results: int = 50
    precision: int = 2
    batch_size: int = 50
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    features: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_FEATURES))
    version: int = 0
    is_default: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_weights(weights: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(weights, dict):
        return ["Field 'weights' must be a mapping of signal name to weight"]

    errors: List[str] = []
    missing = [name for name in SIGNAL_NAMES if name not in weights]
    unknown = sorted(set(weights) - set(SIGNAL_NAMES))
    if missing:
        errors.append(f"Missing weights for: {', '.join(missing)}")
    if unknown:
        errors.append(f"Unknown signals in weights: {', '.join(unknown)}")

    for name in SIGNAL_NAMES:
        if name not in weights:
            continue
        w = weights[name]
        if not _is_number(w):
            errors.append(f"Weight '{name}' must be a number")
        elif not 0.0 <= w <= 1.0:
            errors.append(f"Weight '{name}' must be between 0 and 1")

    if not errors:
        total = sum(weights.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            errors.append(f"Signal weights must sum to 1.0 (±{WEIGHT_TOLERANCE}), got {total:.4f}")
    return errors


def validate_config_values(values: Dict[str, Any]) -> List[str]:
    """Validate a complete set of config values."""
    errors = validate_weights(values.get("weights"))

    floor = values.get("score_floor")
    if not _is_number(floor) or not 0 <= floor <= 100:
        errors.append("Field 'score_floor' must be a number between 0 and 100")

    ranges = {
        "max_results": (1, 200),
        "precision": (0, 4),
        "batch_size": (1, 1000),
        "max_attempts": (1, 100),
    }
    for name, (low, high) in ranges.items():
        v = values.get(name)
        if not _is_int(v) or not low <= v <= high:
            errors.append(f"Field '{name}' must be an integer between {low} and {high}")

    features = values.get("features")
    if not isinstance(features, dict):
        errors.append("Field 'features' must be a mapping of feature name to bool")
    else:
        for name, enabled in features.items():
            if name not in DEFAULT_FEATURES:
                errors.append(f"Unknown feature toggle: {name}")
            elif not isinstance(enabled, bool):
                errors.append(f"Feature '{name}' must be true or false")
    return errors


def default_config(tenant_id: Optional[str] = None) -> MatchEngineConfig:
    return MatchEngineConfig(tenant_id=tenant_id)


def _from_row(row: MatchEngineConfigRow) -> MatchEngineConfig:
    features = dict(DEFAULT_FEATURES)
    features.update(row.features or {})
    return MatchEngineConfig(
        tenant_id=row.tenant_id,
        weights={name: float(row.signal_weights[name]) for name in SIGNAL_NAMES},
        score_floor=float(row.score_floor),
        max_results=int(row.max_results),
        precision=int(row.precision),
        batch_size=int(row.batch_size),
        max_attempts=int(row.max_attempts),
        features=features,
        version=int(row.version),
        is_default=False,
    )


def resolve_config(session: Session, tenant_id: Optional[str]) -> MatchEngineConfig:
    """Return the tenant's stored override, or the system defaults."""
    if tenant_id is None:
        return default_config()
    row = session.get(MatchEngineConfigRow, tenant_id)
    if row is None:
        return default_config(tenant_id)
    return _from_row(row)


def update_config(session: Session, tenant_id: Optional[str], changes: Dict[str, Any]) -> MatchEngineConfig:
    """
    Merge changes onto the tenant's config, validate, and stage the write.

    The caller owns the transaction; nothing is flushed when validation fails.

    Args:
        session: Open SQLAlchemy session
        tenant_id: Tenant whose config is updated
        changes: Subset of UPDATABLE_FIELDS

    Returns:
        The new MatchEngineConfig

    Raises:
        ValidationError: With every problem found
    """
    if not tenant_id:
        raise ValidationError(["A tenant_id is required to update configuration"])

    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError([f"Unknown config field: {name}" for name in unknown])

    current = resolve_config(session, tenant_id)
    merged = {name: getattr(current, name) for name in UPDATABLE_FIELDS}
    merged["weights"] = dict(current.weights)
    merged["features"] = dict(current.features)

    for name, value in changes.items():
        if name in ("weights", "features") and isinstance(value, dict):
            merged[name].update(value)
        else:
            merged[name] = value

    errors = validate_config_values(merged)
    if errors:
        raise ValidationError(errors)

    row = session.get(MatchEngineConfigRow, tenant_id)
    if row is None:
        row = MatchEngineConfigRow(tenant_id=tenant_id, version=0)
        session.add(row)

    row.signal_weights = {name: float(merged["weights"][name]) for name in SIGNAL_NAMES}
    row.score_floor = float(merged["score_floor"])
    row.max_results = merged["max_results"]
    row.precision = merged["precision"]
    row.batch_size = merged["batch_size"]
    row.max_attempts = merged["max_attempts"]
    row.features = dict(merged["features"])
    row.version = current.version + 1
    session.flush()

    return _from_row(row)
