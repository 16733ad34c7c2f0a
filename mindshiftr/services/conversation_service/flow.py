"""Conversation flow tracking.

The flow is a small state machine over conversation stages. Each turn
evaluates the stage trigger phrases in order: the first match moves the
conversation to that stage with confidence 0.8, otherwise it stays put
with confidence 0.2. There is no terminal stage; closure can lead back
into assessment if the user keeps talking.
"""
import logging
from typing import Optional

from mindshiftr.shared.lexicon import Lexicon, load_lexicon, normalize_text
from mindshiftr.shared.models import (
    ConversationStage,
    Depth,
    FlowState,
    Momentum,
    StageTransition,
)

logger = logging.getLogger(__name__)


TONE_RANK = {"negative": 0, "neutral": 1, "positive": 2}


class FlowTracker:
    """Computes the next FlowState from the current one and a message."""

    TRANSITION_CONFIDENCE = 0.8
    SELF_LOOP_CONFIDENCE = 0.2

    def __init__(self, lexicon: Optional[Lexicon] = None):
        self.lexicon = lexicon or load_lexicon()
        self._stages = self.lexicon.matchers("flow", "stages")
        self._engagement = self.lexicon.matcher("flow", "engagement")
        self._disengagement = self.lexicon.matcher("flow", "disengagement")
        self._depth = self.lexicon.matchers("flow", "depth")
        self._tone = self.lexicon.matchers("flow", "tone")

        # Unknown stage or depth names raise ValueError here, at startup
        for name in self._stages:
            ConversationStage(name)
        for name in self._depth:
            Depth(name)

    def evaluate_transition(self, stage: ConversationStage, text: str) -> StageTransition:
        """First matching trigger set wins; otherwise a low-confidence self-loop."""
        for name, matcher in self._stages.items():
            found = matcher.find(text)
            if found:
                return StageTransition(
                    from_stage=stage,
                    to_stage=ConversationStage(name),
                    confidence=self.TRANSITION_CONFIDENCE,
                    trigger=found[0],
                )
        return StageTransition(
            from_stage=stage,
            to_stage=stage,
            confidence=self.SELF_LOOP_CONFIDENCE,
        )

    def advance(self, flow: FlowState, text: str) -> FlowState:
        """Next flow state after the user says text."""
        text = normalize_text(text)
        transition = self.evaluate_transition(flow.stage, text)
        tone = self._tone_of(text, flow.emotional_tone)

        next_flow = FlowState(
            stage=transition.to_stage,
            momentum=self._momentum_of(text, flow.momentum),
            depth=self._depth_of(text, flow.depth),
            emotional_tone=tone,
            tone_trend=_trend(flow.emotional_tone, tone),
            last_transition=transition,
        )

        if not transition.is_self_loop:
            logger.info(
                "FLOW_STAGE_TRANSITION",
                extra={
                    "from_stage": transition.from_stage.value,
                    "to_stage": transition.to_stage.value,
                    "confidence": transition.confidence,
                }
            )
        return next_flow

    def _momentum_of(self, text: str, current: Momentum) -> Momentum:
        if self._engagement.matches(text):
            return Momentum.INCREASING
        if self._disengagement.matches(text):
            return Momentum.DECREASING
        return current

    def _depth_of(self, text: str, current: Depth) -> Depth:
        for name, matcher in self._depth.items():
            if matcher.matches(text):
                return Depth(name)
        return current

    def _tone_of(self, text: str, current: str) -> str:
        positive = self._tone["positive"].count(text) if "positive" in self._tone else 0
        negative = self._tone["negative"].count(text) if "negative" in self._tone else 0
        if positive > negative:
            return "positive"
        if negative > positive:
            return "negative"
        if positive or ("neutral" in self._tone and self._tone["neutral"].matches(text)):
            return "neutral"
        return current


def _trend(previous: str, current: str) -> str:
    before = TONE_RANK.get(previous, 1)
    after = TONE_RANK.get(current, 1)
    if after > before:
        return "improving"
    if after < before:
        return "worsening"
    return "steady"
