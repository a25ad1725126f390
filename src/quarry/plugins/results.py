"""Result types returned by trainer plugins."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quarry.plugins.protocols import FittedModel


@dataclass(frozen=True)
class FitResult:
    """Output of TrainerProtocol.fit().

    metrics carries 'r2' (regression) or 'accuracy' (classification) plus
    'error'; trainers may add more keys.
    """

    model: "FittedModel" = field(repr=False)
    metrics: dict[str, float]
