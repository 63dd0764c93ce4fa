"""FastAPI application factory for the tutoring backend."""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from study_buddy.api.models import ChatBody, ResetBody, WorksheetBody
from study_buddy.config.loader import TutorConfig, default_config
from study_buddy.core.guardrails import GuardrailViolation
from study_buddy.core.orchestrator import ChatOrchestrator, ChatRequest
from study_buddy.core.retention import RetentionSweeper
from study_buddy.core.worksheets import generate_worksheet
from study_buddy.sdk.openai_client import (
    OfflineReplyGenerator,
    ReplyGenerator,
    build_reply_generator,
)
from study_buddy.storage.models import ConversationKey

LOGGER = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong on our side. Please try again in a moment."


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": True, "message": message, **extra}, status_code=status_code)


def create_app(
    config: Optional[TutorConfig] = None,
    generator: Optional[ReplyGenerator] = None,
    *,
    run_sweeper: bool = True,
) -> FastAPI:
    """Create the FastAPI app for the tutor."""
    config = config or default_config()
    if generator is None:
        generator = build_reply_generator(
            model=config.model.name,
            max_tokens=config.model.max_tokens,
            timeout=config.model.timeout_seconds,
            base_url=config.model.base_url,
            api_key_env=config.model.api_key_env,
        )

    orchestrator = ChatOrchestrator(generator=generator, config=config)
    retention = config.retention
    sweeper = RetentionSweeper(
        orchestrator.store,
        orchestrator.transcripts,
        conversation_max_age=timedelta(days=retention.conversation_days),
        max_conversations_per_user=retention.max_conversations_per_user,
        transcript_max_age=timedelta(days=retention.transcript_days),
        interval=timedelta(minutes=retention.sweep_interval_minutes),
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if run_sweeper:
            sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()

    app = FastAPI(title="StudyBuddy Tutor", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.orchestrator = orchestrator
    app.state.sweeper = sweeper

    @app.exception_handler(RequestValidationError)
    async def invalid_request(_: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _error(f"Invalid request: {details}", 400)

    @app.get("/")
    def root() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": "StudyBuddy Tutor",
            "endpoints": [
                "/api/chat",
                "/api/chat/reset",
                "/api/chat/status/{userId}",
                "/api/user/{userId}/tokens",
                "/api/user/{userId}/transcripts",
                "/api/user/{userId}/transcript-stats",
                "/api/generate-worksheet",
                "/api/generate-worksheet-file",
            ],
        }

    @app.post("/api/chat")
    async def chat(body: ChatBody) -> Any:
        request = ChatRequest(
            user_id=body.user_id or "anonymous",
            message=body.message,
            subject=body.subject,
            year_level=body.year_level or config.defaults.year_level,
            curriculum=body.curriculum or config.defaults.curriculum,
            selected_topics=tuple(body.selected_topics),
            reset_context=body.reset_context,
        )
        try:
            reply = await orchestrator.handle(request)
        except GuardrailViolation as e:
            extra: dict[str, Any] = {"reason": e.reason.value}
            if e.usage is not None:
                extra["tokens"] = {"used": e.usage.used, "limit": e.usage.limit, "thisRequest": 0}
            return _error(str(e), e.http_status, **extra)
        except Exception:
            LOGGER.exception("Unexpected error handling chat for %s", request.user_id)
            return _error(GENERIC_ERROR, 500)
        return reply.to_payload()

    @app.post("/api/chat/reset")
    def reset_chat(body: ResetBody) -> dict[str, Any]:
        key = ConversationKey(
            user_id=body.user_id or "anonymous",
            topic=body.subject or "Mathematics",
            year_level=body.year_level or config.defaults.year_level,
        )
        existed = orchestrator.resolver.reset(key)
        LOGGER.info("Reset requested for %s (existed=%s)", key, existed)
        return {
            "success": True,
            "message": (
                "Conversation context reset - ready for a fresh start!"
                if existed
                else "No existing conversation found"
            ),
            "conversationId": key.conversation_id,
        }

    @app.get("/api/chat/status/{user_id}")
    def chat_status(user_id: str) -> dict[str, Any]:
        now = datetime.now()
        conversations = [
            {
                "id": record.key.conversation_id,
                "subject": record.topic,
                "yearLevel": record.year_level,
                "curriculum": record.curriculum,
                "messageCount": len(record.messages),
                "totalTokens": record.total_tokens_used,
                "createdAt": record.created_at.isoformat(),
                "lastActive": record.last_active_at.isoformat(),
                "ageInMinutes": record.age_minutes(now),
            }
            for record in orchestrator.store.list_for_user(user_id)
        ]
        return {
            "conversations": conversations,
            "totalConversations": len(conversations),
            "totalActiveConversations": len(orchestrator.store),
        }

    @app.get("/api/user/{user_id}/tokens")
    def user_tokens(user_id: str) -> dict[str, Any]:
        usage = orchestrator.meter.get_usage(user_id)
        return {
            "tokensUsed": usage.used,
            "tokensLimit": usage.limit,
            "percentage": usage.percentage,
        }

    @app.get("/api/user/{user_id}/transcripts")
    def user_transcripts(
        user_id: str,
        limit: int = Query(20, ge=1, le=200),
        offset: int = Query(0, ge=0),
    ) -> dict[str, Any]:
        entries = orchestrator.transcripts.list_for_user(user_id, limit=limit, offset=offset)
        return {
            "transcripts": [entry.to_payload() for entry in entries],
            "total": orchestrator.transcripts.count(user_id),
            "limit": limit,
            "offset": offset,
        }

    @app.get("/api/user/{user_id}/transcript-stats")
    def transcript_stats(user_id: str) -> dict[str, Any]:
        return orchestrator.transcripts.stats(user_id)

    @app.post("/api/generate-worksheet")
    async def worksheet(body: WorksheetBody) -> Any:
        try:
            questions = await generate_worksheet(
                generator, body.topic, body.difficulty, body.question_count, body.year_level
            )
        except ValueError as e:
            return _error(str(e), 400)
        return {
            "topic": body.topic,
            "difficulty": body.difficulty,
            "yearLevel": body.year_level,
            "questions": questions,
        }

    @app.post("/api/generate-worksheet-file")
    async def worksheet_file(body: WorksheetBody) -> Any:
        if body.format.lower() != "txt":
            return _error(f"Unsupported format '{body.format}'; only 'txt' is available", 400)
        try:
            questions = await generate_worksheet(
                generator, body.topic, body.difficulty, body.question_count, body.year_level
            )
        except ValueError as e:
            return _error(str(e), 400)
        title = f"Year {body.year_level} {body.topic} - {body.difficulty.capitalize()}"
        lines = [title, "", *(f"{index}. {q}" for index, q in enumerate(questions, start=1))]
        filename = f"worksheet-{body.topic.strip().replace(' ', '-').lower()}.txt"
        return PlainTextResponse(
            "\n".join(lines) + "\n",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/login")
    @app.post("/api/register")
    @app.get("/api/user")
    def auth_stub() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/debug")
    def debug() -> dict[str, Any]:
        records = list(orchestrator.store)
        return {
            "model": getattr(generator, "model", type(generator).__name__),
            "providerConfigured": not isinstance(generator, OfflineReplyGenerator),
            "tokenAccounting": "approximate",
            "conversations": {
                "active": len(records),
                "totalMessages": sum(len(record.messages) for record in records),
                "totalTokens": sum(record.total_tokens_used for record in records),
                "subjects": dict(Counter(record.topic for record in records)),
            },
            "users": len(orchestrator.meter),
            "transcripts": len(orchestrator.transcripts),
        }

    return app
