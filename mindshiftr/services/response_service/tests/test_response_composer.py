"""Tests for ResponseComposer and the response variants."""
from dataclasses import replace

import pytest

from mindshiftr.shared.lexicon import load_lexicon
from mindshiftr.shared.models import (
    Analysis,
    CommunicationStyle,
    ConversationStage,
    CrisisAction,
    CrisisAssessment,
    CrisisType,
    DistortionSignal,
    EmotionSignal,
    Intent,
    Message,
    SentimentLabel,
    SentimentScore,
    UserPreferences,
    UserProfile,
)
from mindshiftr.shared.stores import InMemoryStore
from mindshiftr.shared.utils import configure_pii_salt
from mindshiftr.services.analyzer_service import MessageAnalyzer
from mindshiftr.services.conversation_service import SessionManager
from mindshiftr.services.intervention_service import (
    EffectivenessTracker,
    InterventionCatalog,
    InterventionSelector,
)
from mindshiftr.services.response_service import (
    FALLBACK_EMPTY,
    FALLBACK_ERROR,
    ResponseComposer,
    ResponseKind,
)
from mindshiftr.services.safety_service import STATIC_CRISIS_MESSAGE


SUICIDE_CRISIS = CrisisAssessment(
    is_crisis=True,
    severity=10,
    crisis_type=CrisisType.SUICIDE_PREVENTION,
    recommended_action=CrisisAction.IMMEDIATE_EMERGENCY_SERVICES,
    urgency="immediate",
)


def make_analysis(text="I feel so sad", severity=8, emotion="sadness", distortions=()):
    return Analysis(
        message_id="msg_1",
        text=text,
        sentiment=SentimentScore(-3.0, -0.75, SentimentLabel.NEGATIVE),
        emotions=(EmotionSignal(emotion, 0.6),),
        distortions=distortions,
        intent=Intent.SHARING_FEELINGS,
        severity=severity,
    )


def profile_with_style(style):
    return UserProfile(user_id="u1", preferences=UserPreferences(communication_style=style))


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture(scope="module")
def lexicon():
    return load_lexicon()


@pytest.fixture(scope="module")
def catalog(lexicon):
    return InterventionCatalog.from_file(lexicon=lexicon)


@pytest.fixture
def manager():
    return SessionManager(InMemoryStore("sessions"))


@pytest.fixture
def composer(manager, lexicon, catalog):
    return ResponseComposer(manager, lexicon=lexicon, catalog=catalog)


@pytest.fixture
def selector(catalog):
    return InterventionSelector(catalog, EffectivenessTracker(InMemoryStore("profiles"), catalog=catalog))


@pytest.fixture
def session(manager):
    session = manager.get_or_create("s1", "u1")
    manager.begin_turn(session, "hello")
    return session


class TestStandardComposition:

    def test_neutral_message_uses_neutral_template(self, composer, selector, session, catalog):
        analysis = make_analysis("Hello", severity=5, emotion="neutral")

        response = composer.compose(analysis, selector.select(analysis), session)

        assert response.kind == ResponseKind.STANDARD
        assert response.response.startswith("Thanks for reaching out.")
        assert catalog.default.response in response.response
        assert response.therapeutic_style == "empathetic"

    def test_emotional_template_fill(self, composer, selector, session):
        analysis = make_analysis(severity=8)

        response = composer.compose(analysis, selector.select(analysis), session)

        assert "sad" in response.response
        assert "overwhelming" in response.response
        assert "{" not in response.response

    def test_difficulty_tracks_severity(self, composer, selector, session):
        analysis = make_analysis(severity=4)

        response = composer.compose(analysis, selector.select(analysis), session)

        assert "difficult" in response.response
        assert "overwhelming" not in response.response

    def test_style_preference(self, composer, selector, session):
        analysis = make_analysis("Hello", severity=5, emotion="neutral")
        profile = profile_with_style(CommunicationStyle.SOCRATIC)

        response = composer.compose(analysis, selector.select(analysis), session, profile)

        assert response.response.startswith("What would you like to explore today?")
        assert response.therapeutic_style == "socratic"

    def test_template_choice_is_deterministic(self, lexicon, catalog, selector):
        analysis = make_analysis(severity=6)
        responses = []
        for _ in range(2):
            manager = SessionManager(InMemoryStore("sessions"))
            session = manager.get_or_create("s1", "u1")
            manager.begin_turn(session, "hello")
            composer = ResponseComposer(manager, lexicon=lexicon, catalog=catalog)
            responses.append(composer.compose(analysis, selector.select(analysis), session).response)

        assert responses[0] == responses[1]

    def test_stage_opener(self, composer, selector, session):
        session.flow = replace(session.flow, stage=ConversationStage.REFLECTION)
        analysis = make_analysis()

        response = composer.compose(analysis, selector.select(analysis), session)

        assert response.response.startswith("Let's take a moment to reflect")

    def test_records_turn_in_session_logs(self, composer, selector, session, manager):
        analysis = make_analysis("Hello", severity=5, emotion="neutral")

        response = composer.compose(analysis, selector.select(analysis), session)

        stored = manager.get("s1")
        assert stored.emotional_journey == ["negative"]
        assert stored.techniques_used == ["active_listening"]
        assert response.session_info.turn_count == 1
        assert response.session_info.techniques_used == ("active_listening",)

    def test_cultural_adaptation(self, composer, selector, manager):
        session = manager.get_or_create("s2", "u1", cultural_context="eastern")
        manager.begin_turn(session, "hello")
        analysis = make_analysis()

        data = composer.compose(analysis, selector.select(analysis), session).to_dict()

        assert data["culturalAdaptation"]["communication"] == "indirect"

    def test_unknown_culture_has_no_adaptation(self, composer, selector, manager):
        session = manager.get_or_create("s2", "u1", cultural_context="nordic")
        analysis = make_analysis()

        data = composer.compose(analysis, selector.select(analysis), session).to_dict()

        assert "culturalAdaptation" not in data


class TestDistortionContent:

    def test_education_and_follow_up(self, composer, selector, session):
        analysis = make_analysis(
            distortions=(DistortionSignal("labeling", 1, ("i'm useless",)),),
            severity=6,
        )

        response = composer.compose(analysis, selector.select(analysis), session)

        assert response.educational_content.startswith("Labeling")
        assert response.follow_up == "What evidence do you have for and against that thought?"
        tools = [a.tool for a in response.suggested_actions]
        assert "/cbt/thought-record" in tools

    def test_no_distortions_no_education(self, composer, selector, session):
        analysis = make_analysis()

        response = composer.compose(analysis, selector.select(analysis), session)

        assert response.educational_content is None
        assert "educationalContent" not in response.to_dict()

    def test_analyzed_failure_message(self, composer, selector, manager):
        text = "I always fail at everything and I'm useless"
        session = manager.get_or_create("s3", "u1")
        analysis = MessageAnalyzer().analyze(Message(text=text, session_id="s3", user_id="u1"), session)
        manager.begin_turn(session, text)

        data = composer.compose(analysis, selector.select(analysis), session).to_dict()

        distortion_types = {d["type"] for d in data["cognitiveDistortions"]}
        assert {"all_or_nothing", "labeling"} <= distortion_types
        assert "cognitive_restructuring" in data["techniques"]
        assert data["isCrisis"] is False
        assert data["educationalContent"]


class TestCrisisComposition:

    def test_crisis_payload(self, composer, session):
        response = composer.compose_crisis(SUICIDE_CRISIS, make_analysis(severity=10), session)
        data = response.to_dict()

        assert response.kind == ResponseKind.CRISIS
        assert data["isCrisis"] is True
        assert "988" in data["response"]
        assert data["crisisInfo"]["type"] == "suicide-prevention"
        assert data["crisisInfo"]["resources"]
        tools = [a["tool"] for a in data["suggestedActions"]]
        assert tools == ["/crisis", "tel:988", "tel:911"]
        assert all(a["priority"] == "immediate" for a in data["suggestedActions"])

    def test_hotline_action_has_no_emergency_link(self, composer, session):
        assessment = replace(
            SUICIDE_CRISIS, severity=7, recommended_action=CrisisAction.CRISIS_HOTLINE_CONTACT
        )

        tools = [a.tool for a in composer.compose_crisis(assessment, make_analysis(), session).suggested_actions]

        assert tools == ["/crisis", "tel:988"]

    def test_crisis_is_subset_of_standard_shape(self, composer, selector, manager):
        crisis_session = manager.get_or_create("c1", "u1")
        standard_session = manager.get_or_create("c2", "u1")
        analysis = make_analysis()

        crisis = composer.compose_crisis(SUICIDE_CRISIS, analysis, crisis_session).to_dict()
        standard = composer.compose(analysis, selector.select(analysis), standard_session).to_dict()

        assert set(crisis) <= set(standard)
        assert "interventions" not in crisis

    def test_crisis_turn_is_logged_on_session(self, composer, session):
        composer.compose_crisis(SUICIDE_CRISIS, make_analysis(severity=10), session)

        assert "crisis_intervention" in session.techniques_used

    def test_static_crisis_response(self, composer, session):
        response = composer.static_crisis(SUICIDE_CRISIS, session)

        assert response.response == STATIC_CRISIS_MESSAGE
        assert response.is_crisis is True
        assert response.resources
        assert session.techniques_used == []

    def test_unknown_crisis_type_uses_severe_distress(self, composer, session):
        assessment = replace(SUICIDE_CRISIS, crisis_type=CrisisType.SEVERE_DISTRESS)

        response = composer.compose_crisis(assessment, None, session)

        assert "988" in response.response
        assert response.to_dict()["crisisInfo"]["type"] == "severe-distress"


class TestFallbacks:

    def test_empty_message_fallback(self, composer, lexicon):
        response = composer.fallback(FALLBACK_EMPTY)
        data = response.to_dict()

        assert data["response"] == lexicon.section("responses", "empty_message")
        assert data["fallbackReason"] == "empty_message"
        assert data["isCrisis"] is False
        assert data["emotions"] == []
        assert data["interventions"][0]["key"] == "general_support"

    def test_error_fallback(self, composer, lexicon, session):
        response = composer.fallback(FALLBACK_ERROR, session)

        assert response.response == lexicon.section("responses", "error_fallback")
        assert response.session_info.turn_count == 1
        assert response.response
