"""Tests for FlowTracker."""
import pytest

from mindshiftr.shared.models import ConversationStage, Depth, FlowState, Momentum
from mindshiftr.services.conversation_service.flow import FlowTracker


@pytest.fixture
def tracker():
    return FlowTracker()


class TestStageTransitions:

    def test_no_trigger_is_low_confidence_self_loop(self, tracker):
        flow = tracker.advance(FlowState(), "Hello")

        assert flow.stage == ConversationStage.INTRODUCTION
        assert flow.last_transition.is_self_loop
        assert flow.last_transition.confidence == 0.2

    def test_trigger_moves_stage(self, tracker):
        flow = tracker.advance(FlowState(), "What brings you to ask that?")

        assert flow.stage == ConversationStage.ASSESSMENT
        assert flow.last_transition.confidence == 0.8
        assert flow.last_transition.trigger == "what brings you"

    def test_intervention_trigger(self, tracker):
        flow = tracker.advance(FlowState(stage=ConversationStage.ASSESSMENT), "Let's work on this")

        assert flow.stage == ConversationStage.INTERVENTION
        assert flow.last_transition.from_stage == ConversationStage.ASSESSMENT

    def test_closure_is_not_terminal(self, tracker):
        closed = tracker.advance(FlowState(), "Until next time")
        reopened = tracker.advance(closed, "Actually, I have more concerns")

        assert closed.stage == ConversationStage.CLOSURE
        assert reopened.stage == ConversationStage.ASSESSMENT

    def test_first_matching_stage_wins(self, tracker):
        # "concerns" (assessment) is listed before "next steps" (planning)
        flow = tracker.advance(FlowState(), "My concerns about next steps")

        assert flow.stage == ConversationStage.ASSESSMENT


class TestMomentum:

    def test_engagement_increases(self, tracker):
        assert tracker.advance(FlowState(), "Tell me more").momentum == Momentum.INCREASING

    def test_disengagement_decreases(self, tracker):
        flow = FlowState(momentum=Momentum.INCREASING)

        assert tracker.advance(flow, "ok whatever").momentum == Momentum.DECREASING

    def test_no_signal_keeps_momentum(self, tracker):
        flow = FlowState(momentum=Momentum.DECREASING)

        assert tracker.advance(flow, "The bus was late").momentum == Momentum.DECREASING


class TestDepth:

    def test_deep_topics(self, tracker):
        assert tracker.advance(FlowState(), "It goes back to my childhood").depth == Depth.DEEP

    def test_deep_checked_before_surface(self, tracker):
        flow = tracker.advance(FlowState(), "How are you? I keep thinking about my trauma")

        assert flow.depth == Depth.DEEP

    def test_depth_can_return_to_surface(self, tracker):
        flow = tracker.advance(FlowState(depth=Depth.DEEP), "Nice weather today")

        assert flow.depth == Depth.SURFACE

    def test_no_signal_keeps_depth(self, tracker):
        flow = tracker.advance(FlowState(depth=Depth.MODERATE), "The bus was late")

        assert flow.depth == Depth.MODERATE


class TestTone:

    def test_positive_tone_is_improving(self, tracker):
        flow = tracker.advance(FlowState(), "I feel good today")

        assert flow.emotional_tone == "positive"
        assert flow.tone_trend == "improving"

    def test_negative_after_positive_is_worsening(self, tracker):
        flow = tracker.advance(FlowState(emotional_tone="positive"), "Today was bad and sad")

        assert flow.emotional_tone == "negative"
        assert flow.tone_trend == "worsening"

    def test_no_tone_words_keeps_tone(self, tracker):
        flow = tracker.advance(FlowState(emotional_tone="negative"), "The bus was late")

        assert flow.emotional_tone == "negative"
        assert flow.tone_trend == "steady"
