"""Audio level smoothing for the recording indicator."""

from __future__ import annotations

ATTACK_WEIGHT = 0.7  # fast rise on speech onset
RELEASE_WEIGHT = 0.2  # slow decay on silence


def _clamp(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return min(1.0, max(0.0, value))


class LevelSmoother:
    """Asymmetric exponential smoothing of raw levels in ``[0, 1]``."""

    def __init__(
        self,
        attack: float = ATTACK_WEIGHT,
        release: float = RELEASE_WEIGHT,
    ) -> None:
        self._attack = attack
        self._release = release
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def update(self, raw_level: float) -> float:
        level = _clamp(float(raw_level))
        weight = self._attack if level > self._value else self._release
        self._value = _clamp(level * weight + self._value * (1.0 - weight))
        return self._value

    def reset(self) -> None:
        self._value = 0.0
