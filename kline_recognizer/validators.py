from .config import RecognitionConfig
from .types import Boundaries, ColorClass, KLineInfo, ValidationResult


def boundary_errors(b: Boundaries) -> list[str]:
    """Containment and ordering problems between the candle rectangles."""
    errors = []
    if b.full is None:
        return errors
    for name in ("body", "upper_shadow", "lower_shadow"):
        part = getattr(b, name)
        if part is not None and not b.full.contains(part):
            errors.append(f"{name} lies outside the full boundary")
    if b.body is not None:
        if b.upper_shadow is not None and b.upper_shadow.bottom > b.body.top:
            errors.append("upper shadow extends below body top")
        if b.lower_shadow is not None and b.lower_shadow.top < b.body.bottom:
            errors.append("lower shadow starts above body bottom")
    return errors


def validate(info: KLineInfo, config: RecognitionConfig | None = None) -> ValidationResult:
    """Check a fused recognition against every consistency rule; list all failures."""
    config = config or RecognitionConfig()
    errors = []

    if info.boundaries.is_empty:
        errors.append("empty boundary")
    if info.color.color_class is ColorClass.UNKNOWN:
        errors.append("unknown color")
    if info.confidence < config.min_confidence:
        errors.append(
            f"confidence too low: {info.confidence:.2f} < {config.min_confidence:.2f}"
        )

    s = info.structure
    if s.total_height <= 0:
        errors.append("invalid total height")
    if min(s.body_height, s.upper_shadow_height, s.lower_shadow_height) < 0:
        errors.append("negative structure size")
    if s.height_discrepancy > config.structure_tolerance:
        errors.append(
            f"inconsistent structure sizes: parts differ from total by {s.height_discrepancy}px"
        )

    errors.extend(boundary_errors(info.boundaries))
    return ValidationResult(is_valid=not errors, errors=tuple(errors))
