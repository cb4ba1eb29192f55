from .schemas.cluster import NodeTaint, TaintEffect

# Kubernetes effect name -> provider enum token (EKS and GKE APIs)
_EFFECT_TOKENS = {
    TaintEffect.NO_SCHEDULE.value: "NO_SCHEDULE",
    TaintEffect.NO_EXECUTE.value: "NO_EXECUTE",
}


def normalize_taint_effect(effect: TaintEffect | str) -> str:
    """
    Converts a taint effect to the provider enum token.
    NoSchedule -> NO_SCHEDULE, NoExecute -> NO_EXECUTE. PreferNoSchedule and
    values that are already tokens pass through unchanged.
    """
    value = effect.value if isinstance(effect, TaintEffect) else effect
    return _EFFECT_TOKENS.get(value, value)


def taint_string(taint: NodeTaint) -> str:
    """Renders a taint as ``key=value:Effect`` (AKS node taint syntax)."""
    return f"{taint.key}={taint.value}:{taint.effect.value}"
