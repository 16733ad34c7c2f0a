"""MindShiftr services.

Each turn flows through them in order:
- analyzer_service: sentiment, emotions, distortions, severity
- safety_service: deterministic crisis detection, runs before any selection
- conversation_service: per-session state, stage and crisis ratchet
- intervention_service: candidates, clinical filtering, ranking, feedback
- clinical_service: contraindication rules
- response_service: final text and payload
- engine: orchestration and the HTTP surface
"""
