from __future__ import annotations

import hashlib
import os
import re
import sys
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from health_assistant import (
    ChatTurn,
    DEFAULT_CHAT_MODELS,
    DEFAULT_SYMPTOM_MODELS,
    GeminiClient,
    InputValidationError,
    ProviderCallError,
    ProviderExhausted,
    ResponseOrchestrator,
    SymptomInput,
)
from health_assistant.orchestrator import validate_history, validate_symptoms
from health_assistant.provider import GEMINI_API_BASE
from health_records import HealthRecordService, RecordError, SQLiteHealthDB
from health_records.time_utils import to_iso, utc_now

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        repo_root / ".env.local",
        repo_root / "backend/.env",
    ]
    for candidate in candidates:
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()


def _configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("HEALTHMATE_LOG_LEVEL", "INFO").upper())


_configure_logging()


def _include_error_details() -> bool:
    return os.getenv("HEALTHMATE_ENV", "production").strip().lower() == "development"


def _model_list_from_env(env_name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = (os.getenv(env_name) or "").strip()
    if not raw:
        return default
    models = tuple(item.strip() for item in raw.split(",") if item.strip())
    return models or default


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatTurnPayload(ApiModel):
    role: str
    content: str = ""
    timestamp: str | None = None


class ChatRequest(ApiModel):
    message: str | None = None
    history: list[ChatTurnPayload] = Field(default_factory=list)
    chat_id: str | None = None


class ChatSaveRequest(ApiModel):
    chat_id: str | None = None
    messages: list[dict[str, Any]] = Field(default_factory=list)
    title: str | None = None


class SymptomPayload(ApiModel):
    name: str = ""
    severity: str = ""
    duration: str = ""


class SymptomCheckRequest(ApiModel):
    symptoms: list[SymptomPayload] = Field(default_factory=list)
    age: int | None = None
    gender: str | None = None
    additional_info: str | None = None


class HealthMetricRequest(ApiModel):
    metric_type: str | None = Field(default=None, alias="type")
    value: dict[str, Any] | None = None
    unit: str | None = None
    notes: str | None = None
    measured_at: str | None = None


class MedicationFields(ApiModel):
    name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    times: list[str] | None = None
    start_date: str | None = None
    end_date: str | None = None
    instructions: str | None = None
    side_effects: list[str] | None = None
    reminder_enabled: bool | None = None


class MedicationUpdateRequest(MedicationFields):
    id: str | None = None
    is_active: bool | None = None


class MedicationLogRequest(ApiModel):
    medication_id: str | None = None
    status: str | None = None
    notes: str | None = None
    taken_at: str | None = None


class HealthMateApp:
    def __init__(self) -> None:
        db_path = os.getenv(
            "HEALTHMATE_DB_PATH",
            str((Path(__file__).resolve().parent / "healthmate.sqlite")),
        )
        self.db = SQLiteHealthDB(db_path)
        self.records = HealthRecordService(self.db)
        self.provider = self._build_provider()
        self.orchestrator: ResponseOrchestrator | None = None
        if self.provider is not None:
            self.orchestrator = ResponseOrchestrator(
                self.provider,
                chat_models=_model_list_from_env("HEALTHMATE_CHAT_MODELS", DEFAULT_CHAT_MODELS),
                symptom_models=_model_list_from_env("HEALTHMATE_SYMPTOM_MODELS", DEFAULT_SYMPTOM_MODELS),
            )

    @staticmethod
    def _build_provider() -> GeminiClient | None:
        api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
        if not api_key:
            logger.warning("GEMINI_API_KEY is not set; AI endpoints will return 500")
            return None
        return GeminiClient(
            api_key,
            base_url=os.getenv("GEMINI_API_BASE_URL", GEMINI_API_BASE),
            timeout_seconds=float(os.getenv("HEALTHMATE_PROVIDER_TIMEOUT_SECONDS", "25")),
        )


container = HealthMateApp()
app = FastAPI(title="HealthMate Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if details is not None and _include_error_details():
        body["details"] = details
    return body


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body("Invalid request body", str(exc.errors())))


@app.exception_handler(InputValidationError)
async def _input_validation_error(request: Request, exc: InputValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(ProviderExhausted)
async def _provider_error(request: Request, exc: ProviderExhausted) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.detail))


@app.exception_handler(RecordError)
async def _record_error(request: Request, exc: RecordError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


_TRUSTED_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]{1,64}@[A-Za-z0-9.-]{1,253}\.[A-Za-z]{2,}$")
_ANON_USER = "demo@healthmate.local"


def _validated_trusted_email(x_user_email: str) -> str:
    candidate = x_user_email.strip().lower()
    if not candidate or not _TRUSTED_EMAIL_RE.fullmatch(candidate):
        raise HTTPException(status_code=400, detail="Invalid X-User-Email")
    return candidate


def get_user_id(auth_header: str | None) -> str:
    raw = (auth_header or "").replace("Bearer", "", 1).strip()
    if not raw:
        if os.getenv("ALLOW_ANON", "false").lower() == "true":
            return _ANON_USER
        raise HTTPException(status_code=401, detail="Unauthorized")
    # Bearer tokens are opaque; only an upstream-verified header carries a real email.
    if _TRUSTED_EMAIL_RE.fullmatch(raw.lower()):
        return raw.lower()
    if len(raw) > 96:
        return f"token_{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:24]}"
    return raw


def resolve_user_id(authorization: str | None, x_user_email: str | None) -> str:
    if x_user_email is not None:
        return _validated_trusted_email(x_user_email)
    return get_user_id(authorization)


def _require_orchestrator(message: str) -> ResponseOrchestrator:
    if container.orchestrator is None:
        raise HTTPException(status_code=500, detail=message)
    return container.orchestrator


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/chat")
def chat(
    payload: ChatRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    message = payload.message or ""
    if not message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    history = [
        ChatTurn(role=turn.role.strip().lower(), content=turn.content, timestamp=turn.timestamp)
        for turn in payload.history
    ]
    validate_history(history)
    if payload.chat_id:
        container.records.chats.get_chat(user_id, payload.chat_id)
    orchestrator = _require_orchestrator(
        "Gemini API key is not configured. Please add GEMINI_API_KEY to your environment."
    )

    asked_at = to_iso(utc_now())
    reply = orchestrator.answer_question(message, history)
    timestamp = to_iso(utc_now())
    body: dict[str, Any] = {"response": reply, "timestamp": timestamp}
    if payload.chat_id:
        container.records.chats.append_turns(
            user_id=user_id,
            chat_id=payload.chat_id,
            turns=[
                {"role": "user", "content": message, "timestamp": asked_at},
                {"role": "assistant", "content": reply, "timestamp": timestamp},
            ],
        )
        body["chatId"] = payload.chat_id
    return body


@app.get("/symptom-check")
def list_symptom_checks(
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    return {"checks": container.records.symptom_checks.recent_checks(user_id, 20)}


@app.post("/symptom-check")
def symptom_check(
    payload: SymptomCheckRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    symptoms = [
        SymptomInput(
            name=item.name.strip(),
            severity=item.severity.strip().lower(),
            duration=item.duration.strip(),
        )
        for item in payload.symptoms
    ]
    validate_symptoms(symptoms, payload.age)
    orchestrator = _require_orchestrator("Gemini API key is not configured")

    analysis = orchestrator.analyze_symptoms(
        symptoms,
        age=payload.age,
        gender=payload.gender,
        additional_info=payload.additional_info,
    )
    record = container.records.symptom_checks.add_check(
        user_id=user_id,
        symptoms=[symptom.as_dict() for symptom in symptoms],
        analysis=analysis.as_dict(),
        age=payload.age,
        gender=payload.gender,
        additional_info=payload.additional_info,
    )
    return {"success": True, "checkId": record["id"], "analysis": record["analysis"]}


@app.get("/chats")
def list_chats(
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    return {"chats": container.records.chats.list_chats(user_id)}


@app.post("/chats")
def save_chat(
    payload: ChatSaveRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    logger.info("saving chat for {} (chat_id={}, messages={})", user_id, payload.chat_id, len(payload.messages))
    if payload.chat_id:
        chat_record = container.records.chats.replace_chat(
            user_id=user_id,
            chat_id=payload.chat_id,
            title=payload.title,
            messages=payload.messages,
        )
    else:
        chat_record = container.records.chats.create_chat(
            user_id=user_id,
            title=payload.title,
            messages=payload.messages,
        )
    return {"chat": chat_record}


@app.delete("/chats")
def delete_all_chats(
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    deleted = container.records.chats.delete_all(user_id)
    return {"success": True, "deletedCount": deleted}


@app.get("/chats/{chat_id}")
def get_chat(
    chat_id: str,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    return {"chat": container.records.chats.get_chat(user_id, chat_id)}


@app.delete("/chats/{chat_id}")
def delete_chat(
    chat_id: str,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    container.records.chats.delete_chat(user_id, chat_id)
    return {"success": True}


@app.get("/health-metrics")
def list_health_metrics(
    metric_type: str | None = Query(default=None, alias="type"),
    limit: int = 30,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    return {"metrics": container.records.metrics.list_metrics(user_id, metric_type=metric_type, limit=limit)}


@app.post("/health-metrics")
def add_health_metric(
    payload: HealthMetricRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    if not payload.metric_type or not payload.value or not payload.unit:
        raise HTTPException(status_code=400, detail="Type, value, and unit are required")
    metric = container.records.metrics.add_metric(
        user_id=user_id,
        metric_type=payload.metric_type,
        value=payload.value,
        unit=payload.unit,
        notes=payload.notes,
        measured_at=payload.measured_at,
    )
    return {"success": True, "metric": metric}


@app.delete("/health-metrics")
def delete_health_metric(
    metric_id: str | None = Query(default=None, alias="id"),
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    if not metric_id:
        raise HTTPException(status_code=400, detail="ID is required")
    container.records.metrics.delete_metric(user_id, metric_id)
    return {"success": True}


@app.get("/medications")
def list_medications(
    active: bool = False,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    return {"medications": container.records.medications.list_medications(user_id, active_only=active)}


@app.post("/medications")
def add_medication(
    payload: MedicationFields,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    medication = container.records.medications.add_medication(
        user_id=user_id,
        payload=payload.model_dump(by_alias=True),
    )
    return {"success": True, "medication": medication}


@app.patch("/medications")
def update_medication(
    payload: MedicationUpdateRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    if not payload.id:
        raise HTTPException(status_code=400, detail="ID is required")
    updates = payload.model_dump(by_alias=True, exclude_unset=True, exclude={"id"})
    medication = container.records.medications.update_medication(
        user_id=user_id,
        medication_id=payload.id,
        updates=updates,
    )
    return {"success": True, "medication": medication}


@app.delete("/medications")
def delete_medication(
    medication_id: str | None = Query(default=None, alias="id"),
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    if not medication_id:
        raise HTTPException(status_code=400, detail="ID is required")
    container.records.medications.delete_medication(user_id, medication_id)
    return {"success": True}


@app.post("/medications/log")
def log_medication(
    payload: MedicationLogRequest,
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_email)
    if not payload.medication_id or not payload.status:
        raise HTTPException(status_code=400, detail="Medication ID and status are required")
    medication = container.records.medications.log_intake(
        user_id=user_id,
        medication_id=payload.medication_id,
        status=payload.status,
        notes=payload.notes,
        taken_at=payload.taken_at,
    )
    return {"success": True, "medication": medication}


@app.get("/diagnostics/provider")
def diagnostics_provider(
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    resolve_user_id(authorization, x_user_email)
    provider = container.provider
    if provider is None:
        return {"success": False, "error": "GEMINI_API_KEY not configured"}
    try:
        models = provider.list_models()
    except ProviderCallError as exc:
        logger.warning("provider diagnostics failed: {}", exc)
        return JSONResponse(
            status_code=exc.status_code or 502,
            content={
                "success": False,
                "status": exc.status_code,
                "error": str(exc),
                "instructions": {
                    "403_Forbidden": "API not enabled or billing not set up",
                    "400_Bad_Request": "Invalid API key format",
                    "Solution": "Create a new API key at https://aistudio.google.com/app/apikey",
                },
            },
        )
    generate_models = [model for model in models if "generateContent" in model["methods"]]
    configured = container.orchestrator.chat_models if container.orchestrator else ()
    return {
        "success": True,
        "apiKeyPrefix": provider.key_prefix,
        "totalModels": len(models),
        "availableModels": models,
        "recommendedModel": generate_models[0]["name"] if generate_models else None,
        "configuredChatModels": list(configured),
        "unavailableConfiguredModels": [
            name for name in configured if name not in {model["name"] for model in generate_models}
        ],
    }


@app.get("/diagnostics/db")
def diagnostics_db(
    authorization: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
):
    resolve_user_id(authorization, x_user_email)
    status = container.records.status()
    if not status["connected"]:
        return JSONResponse(status_code=500, content={"success": False, **status})
    return {"success": True, **status}
