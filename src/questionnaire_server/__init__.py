"""questionnaire_server — FastAPI HTTP surface for the questionnaire flow SDK."""
