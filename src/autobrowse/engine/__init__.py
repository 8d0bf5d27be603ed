"""
Engine Module - Perception and action execution against live pages.

- PerceptionEngine: observations and structured extraction
- TargetResolver: DOM locator strategy chain
- VisionResolver: fallback target resolution
- ActionExecutor: policy-gated execution returning Ok / NeedsConfirmation / Err
"""

from autobrowse.engine.perception import PerceptionEngine
from autobrowse.engine.target_resolver import ResolutionStrategy, ResolvedTarget, TargetResolver
from autobrowse.engine.vision_resolver import VisionResolution, VisionResolver, VisionStrategy
from autobrowse.engine.results import ActionOutcome, Err, NeedsConfirmation, Ok
from autobrowse.engine.action_executor import ActionExecutor

__all__ = [
    "PerceptionEngine",
    "TargetResolver",
    "ResolvedTarget",
    "ResolutionStrategy",
    "VisionResolver",
    "VisionResolution",
    "VisionStrategy",
    "ActionOutcome",
    "Ok",
    "NeedsConfirmation",
    "Err",
    "ActionExecutor",
]
