"""
Tests for the HTTP API.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from study_buddy.api import create_app
from study_buddy.config.loader import DefaultsConfig, TutorConfig
from study_buddy.sdk.openai_client import GeneratedReply, GenerationError, OfflineReplyGenerator


class FakeGenerator:
    model = "fake-model"

    def __init__(self, outcome=None):
        self.outcome = outcome or GeneratedReply(
            "What could we do first?", input_tokens=100, output_tokens=20
        )

    async def generate_reply(self, system_prompt, messages):
        await asyncio.sleep(0)
        return self.outcome


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def app(generator):
    return create_app(generator=generator, run_sweeper=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def chat(client, message, **extra):
    return client.post("/api/chat", json={"message": message, "userId": "alex", **extra})


class TestChatEndpoint:
    """Test POST /api/chat."""

    def test_chat_reply(self, client):
        response = chat(client, "Solve 2x + 5 = 15", yearLevel=7, curriculum="NSW")

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "What could we do first?"
        assert body["detectedTopic"] == "Algebra"
        assert body["subject"] == "Algebra"
        assert body["conversationLength"] == 2
        assert body["conversationId"] == "alex_Algebra_7"
        assert body["tokens"] == {"used": 120, "limit": 5000, "thisRequest": 120, "approximate": True}
        assert body["fallback"] is False
        assert "error" not in body

    def test_config_defaults_apply(self, generator):
        """Test that omitted request fields take the configured defaults."""
        config = TutorConfig(defaults=DefaultsConfig(curriculum="VIC", year_level=8))
        with TestClient(create_app(config, generator, run_sweeper=False)) as client:
            body = chat(client, "Solve 2x + 5 = 15").json()

        assert body["curriculum"] == "VIC"
        assert body["yearLevel"] == 8
        assert body["conversationId"] == "alex_Algebra_8"

    def test_follow_up_extends_conversation(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = chat(client, "5").json()

        assert body["detectedTopic"] == "Algebra"
        assert body["conversationLength"] == 4

    @pytest.mark.parametrize("payload", [{"message": ""}, {"message": "   "}, {}])
    def test_empty_message_is_400(self, client, payload):
        response = client.post("/api/chat", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] is True
        assert response.json()["message"] == "Message is required"

    def test_malformed_body_is_400(self, client):
        response = client.post("/api/chat", json={"message": "hi", "yearLevel": "seven"})

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid request")

    def test_token_limit_is_429(self, client, app):
        app.state.orchestrator.meter.record("alex", 5000)

        response = chat(client, "Solve 2x + 5 = 15")

        assert response.status_code == 429
        body = response.json()
        assert body["reason"] == "token_limit_exceeded"
        assert body["tokens"] == {"used": 5000, "limit": 5000, "thisRequest": 0}
        assert len(app.state.orchestrator.store) == 0

    def test_off_topic_is_soft_decline(self, client):
        response = chat(client, "tell me about movies")

        assert response.status_code == 200
        body = response.json()
        assert body["error"] == "off_topic"
        assert body["conversationLength"] == 0
        assert "mathematics" in body["response"]

    def test_decline_keeps_conversation_length(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = chat(client, "tell me about movies").json()

        assert body["error"] == "off_topic"
        assert body["conversationLength"] == 2
        assert client.get("/api/chat/status/alex").json()["conversations"][0]["messageCount"] == 2

    def test_fallback_reply(self, client, generator):
        generator.outcome = GenerationError(kind="provider", detail="down")

        body = chat(client, "Solve 2x + 5 = 15").json()

        assert body["fallback"] is True
        assert "technical hiccup" in body["response"]
        assert body["conversationLength"] == 2

    def test_unexpected_error_is_500(self, client, app):
        async def broken(request):
            raise RuntimeError("boom")

        app.state.orchestrator.handle = broken

        response = chat(client, "Solve 2x + 5 = 15")

        assert response.status_code == 500
        assert "boom" not in response.text


class TestConversationEndpoints:
    """Test reset and status endpoints."""

    def test_status_lists_conversations(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = client.get("/api/chat/status/alex").json()

        assert body["totalConversations"] == 1
        assert body["totalActiveConversations"] == 1
        conversation = body["conversations"][0]
        assert conversation["id"] == "alex_Algebra_7"
        assert conversation["subject"] == "Algebra"
        assert conversation["messageCount"] == 2
        assert conversation["totalTokens"] == 120

    def test_reset(self, client):
        chat(client, "Solve 2x + 5 = 15")

        response = client.post("/api/chat/reset", json={"userId": "alex", "subject": "Algebra", "yearLevel": 7})

        assert response.json()["success"] is True
        assert response.json()["message"] == "Conversation context reset - ready for a fresh start!"
        assert client.get("/api/chat/status/alex").json()["totalConversations"] == 0

    def test_reset_missing_conversation(self, client):
        response = client.post("/api/chat/reset", json={"userId": "nobody"})

        assert response.json()["message"] == "No existing conversation found"
        assert response.json()["conversationId"] == "nobody_Mathematics_7"


class TestUserEndpoints:
    """Test token and transcript endpoints."""

    def test_tokens(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = client.get("/api/user/alex/tokens").json()

        assert body == {"tokensUsed": 120, "tokensLimit": 5000, "percentage": 2}

    def test_tokens_for_new_user(self, client):
        assert client.get("/api/user/sam/tokens").json()["tokensUsed"] == 0

    def test_transcripts_paginated(self, client):
        for message in ("Solve 2x + 5 = 15", "5", "yes"):
            chat(client, message)

        body = client.get("/api/user/alex/transcripts", params={"limit": 2, "offset": 1}).json()

        assert body["total"] == 3
        assert len(body["transcripts"]) == 2
        assert body["transcripts"][0]["userId"] == "alex"
        assert body["transcripts"][0]["metadata"]["detectedTopic"] == "Algebra"

    def test_transcripts_invalid_limit(self, client):
        response = client.get("/api/user/alex/transcripts", params={"limit": 0})

        assert response.status_code == 400

    def test_transcript_stats(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = client.get("/api/user/alex/transcript-stats").json()

        assert set(body) == {"totalTranscripts", "last7DaysCount", "subjects", "totalTokens"}
        assert body["totalTranscripts"] == 1
        assert body["last7DaysCount"] == 1
        assert body["subjects"] == {"Algebra": 1}
        assert body["totalTokens"] == 120


class TestWorksheetEndpoints:
    """Test worksheet generation."""

    def test_worksheet_from_model(self, client, generator):
        generator.outcome = GeneratedReply("1. What is 3 + 4?\n2. What is 5 x 6?")

        body = client.post("/api/generate-worksheet", json={"topic": "Integers", "questionCount": 2}).json()

        assert body["questions"] == ["What is 3 + 4?", "What is 5 x 6?"]
        assert body["topic"] == "Integers"

    def test_worksheet_falls_back_to_samples(self, client, generator):
        generator.outcome = GenerationError(kind="timeout")

        body = client.post("/api/generate-worksheet", json={"topic": "Integers", "questionCount": 3}).json()

        assert body["questions"] == [
            "Solve for x: 2x + 3 = 13",
            "Solve for x: 2x + 4 = 14",
            "Solve for x: 2x + 5 = 15",
        ]

    def test_worksheet_requires_topic(self, client):
        response = client.post("/api/generate-worksheet", json={"questionCount": 3})

        assert response.status_code == 400
        assert response.json()["message"] == "topic is required"

    def test_worksheet_file(self, client, generator):
        generator.outcome = GeneratedReply("1. What is 3 + 4?")

        response = client.post(
            "/api/generate-worksheet-file",
            json={"topic": "Integers", "questionCount": 1, "format": "txt"},
        )

        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="worksheet-integers.txt"'
        assert response.text == "Year 7 Integers - Medium\n\n1. What is 3 + 4?\n"

    def test_worksheet_file_rejects_other_formats(self, client):
        response = client.post("/api/generate-worksheet-file", json={"topic": "Integers", "format": "pdf"})

        assert response.status_code == 400


class TestMiscEndpoints:
    """Test root, auth placeholders and debug."""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    @pytest.mark.parametrize("method,path", [("post", "/api/login"), ("post", "/api/register"), ("get", "/api/user")])
    def test_auth_placeholders(self, client, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_debug(self, client):
        chat(client, "Solve 2x + 5 = 15")

        body = client.get("/debug").json()

        assert body["model"] == "fake-model"
        assert body["providerConfigured"] is True
        assert body["conversations"]["active"] == 1
        assert body["conversations"]["subjects"] == {"Algebra": 1}
        assert body["users"] == 1
        assert body["transcripts"] == 1

    def test_debug_offline(self):
        app = create_app(generator=OfflineReplyGenerator(), run_sweeper=False)
        with TestClient(app) as client:
            body = client.get("/debug").json()

        assert body["model"] == "offline"
        assert body["providerConfigured"] is False
