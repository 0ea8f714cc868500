"""Flask JSON API exposing the TransConnect core to the mobile front-end."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from typing import Any, Coroutine, TypeVar

from flask import Blueprint, Flask, Response, current_app, jsonify, request, send_file

from transconnect_core import Services, TransConnectError, build_services, load_settings
from transconnect_core.errors import (
    ConfigurationError,
    DeviceMismatchError,
    DuplicateEmailError,
    DuplicateNameError,
    InvalidCredentialsError,
    NotFoundError,
    QuotaExceededError,
    StorageFailure,
    ValidationError,
)
from transconnect_core.languages import COMMON_LANGUAGE_PAIRS, LANGUAGES
from transconnect_core.models import UserRecord
from transconnect_core.services import ALLOWED_MIME_TYPES, ErrorCategory
from transconnect_core.services.stt import normalize_mime_type
from transconnect_core.subscription import quota_for

LOGGER = logging.getLogger(__name__)

API = Blueprint("api", __name__, url_prefix="/api")

T = TypeVar("T")

_STATUS_BY_ERROR: dict[type[TransConnectError], int] = {
    ValidationError: 400,
    DuplicateEmailError: 409,
    DuplicateNameError: 409,
    NotFoundError: 404,
    InvalidCredentialsError: 401,
    QuotaExceededError: 402,
    DeviceMismatchError: 403,
    ConfigurationError: 503,
    StorageFailure: 500,
}
_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.RATE_LIMITED: 429,
    ErrorCategory.INVALID_REQUEST: 400,
    ErrorCategory.AUTH_FAILED: 502,
    ErrorCategory.OTHER: 502,
}
# camelCase request fields accepted by PATCH /api/users/<id>.
_PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phoneNumber": "phone_number",
    "password": "password",
}


class NotSignedInError(TransConnectError):
    code = "not_signed_in"

    def __init__(self, message: str = "Please sign in first") -> None:
        super().__init__(message)


class ForbiddenError(TransConnectError):
    code = "forbidden"

    def __init__(self, message: str = "You can only change your own profile") -> None:
        super().__init__(message)


class AsyncRunner:
    """Runs coroutines on one long-lived event loop in a background thread.

    The core's locks must always be awaited from the same loop, so request
    handlers never create their own.
    """

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="transconnect-loop", daemon=True)
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def close(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)


def create_app(config: dict[str, Any] | None = None, services: Services | None = None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        MAX_CONTENT_LENGTH=20 * 1024 * 1024,  # generous safety limit (~20 MB)
        TRANSCONNECT_ENABLE_CORS=False,
        TRANSCONNECT_CORS_ORIGIN="*",
    )
    if config:
        app.config.update(config)

    if services is None:
        services = build_services(load_settings())
        LOGGER.info("Loaded settings for web API")
    app.extensions["transconnect"] = services
    app.extensions["transconnect_runner"] = AsyncRunner()

    app.register_blueprint(API)

    @app.errorhandler(TransConnectError)
    def handle_domain_error(exc: TransConnectError):
        status = _status_for(exc)
        if status >= 500:
            LOGGER.error("Request failed: %s", exc)
        return json_error(exc.code, exc.message, status)

    @app.after_request
    def apply_cors_headers(response: Response) -> Response:
        if app.config.get("TRANSCONNECT_ENABLE_CORS"):
            response.headers.setdefault("Access-Control-Allow-Origin", app.config["TRANSCONNECT_CORS_ORIGIN"])
            response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
            response.headers.setdefault("Access-Control-Allow-Methods", "GET,POST,PATCH,DELETE,OPTIONS")
        return response

    return app


@API.get("/health")
def health() -> Response:
    return jsonify({"ok": True})


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@API.post("/auth/signup")
def api_sign_up():
    payload = request.get_json(silent=True) or {}
    user = run(
        services().users.register(
            str(payload.get("firstName") or ""),
            str(payload.get("lastName") or ""),
            str(payload.get("email") or ""),
            str(payload.get("phoneNumber") or ""),
            str(payload.get("password") or ""),
        )
    )
    return jsonify(user.public_mapping()), 201


@API.post("/auth/signin")
def api_sign_in() -> Response:
    payload = request.get_json(silent=True) or {}
    user = run(services().session.sign_in(str(payload.get("email") or ""), str(payload.get("password") or "")))
    return jsonify(user.public_mapping())


@API.post("/auth/signout")
def api_sign_out() -> Response:
    run(services().session.sign_out())
    return jsonify({"ok": True})


@API.get("/auth/me")
def api_current_user() -> Response:
    return jsonify(require_user().public_mapping())


@API.patch("/users/<user_id>")
def api_update_user(user_id: str) -> Response:
    if require_user().id != user_id:
        raise ForbiddenError()
    payload = request.get_json(silent=True) or {}
    unknown = sorted(set(payload) - set(_PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Unsupported profile fields: {', '.join(unknown)}")
    changes = {_PROFILE_FIELDS[key]: value for key, value in payload.items()}
    user = run(services().users.update(user_id, changes))
    return jsonify(user.public_mapping())


@API.get("/users/lookup/<value>")
def api_lookup_user(value: str) -> Response:
    user = run(services().users.find_by_id_or_phone(value))
    if user is None:
        raise NotFoundError("User not found")
    return jsonify({"id": user.id, "firstName": user.first_name, "lastName": user.last_name})


# ---------------------------------------------------------------------------
# Subscription & usage
# ---------------------------------------------------------------------------


@API.get("/subscription")
def api_get_subscription() -> Response:
    user = require_user()
    return jsonify(subscription_payload(user, request.args.get("deviceId")))


@API.post("/subscription")
def api_set_subscription() -> Response:
    user = require_user()
    payload = request.get_json(silent=True) or {}
    device_id = payload.get("deviceId")
    run(services().meter.set_subscription(user.id, str(payload.get("plan") or ""), device_id))
    return jsonify(subscription_payload(user, device_id))


@API.get("/usage")
def api_usage() -> Response:
    user = require_user()
    meter = services().meter
    subscription = run(meter.get_subscription(user.id))
    usage = run(meter.get_usage(user.id))
    limit = quota_for(subscription.plan)
    return jsonify({"usage": usage, "limit": limit, "remaining": max(0, limit - usage), "canTranslate": usage < limit})


# ---------------------------------------------------------------------------
# Translation & speech
# ---------------------------------------------------------------------------


@API.post("/translate")
def api_translate():
    payload = request.get_json(silent=True) or {}
    settings = services().settings
    result = run(
        services().workflow.translate_text(
            str(payload.get("text") or ""),
            str(payload.get("sourceLanguage") or settings.default_source_language),
            str(payload.get("targetLanguage") or settings.default_target_language),
            device_id=payload.get("deviceId"),
        )
    )
    if not result.success:
        return client_failure(result.translation)
    return jsonify(result.to_mapping())


@API.get("/languages")
def api_languages() -> Response:
    return jsonify(
        {
            "languages": list(LANGUAGES),
            "commonPairs": [{"source": source, "target": target} for source, target in COMMON_LANGUAGE_PAIRS],
        }
    )


@API.post("/detect")
def api_detect():
    payload = request.get_json(silent=True) or {}
    result = run(services().translator.detect_language(str(payload.get("text") or "")))
    if not result.success:
        return client_failure(result)
    return jsonify(result.to_mapping())


@API.post("/transcribe")
def api_transcribe():
    audio_file = request.files.get("audio")
    if audio_file is None:
        return json_error("missing_audio", "Missing audio upload", 400)

    mimetype = normalize_mime_type(audio_file.mimetype)
    if mimetype not in ALLOWED_MIME_TYPES:
        return json_error("unsupported_type", f"Unsupported audio type: {mimetype}", 400)

    raw_data = audio_file.read()
    if not raw_data:
        return json_error("empty_audio", "Uploaded audio file is empty", 400)

    settings = services().settings
    language = _normalize_language(request.form.get("language"))
    if _parse_bool(request.form.get("translate")):
        result = run(
            services().workflow.translate_voice(
                raw_data,
                language or settings.default_source_language,
                _normalize_language(request.form.get("target_lang")) or settings.default_target_language,
                mimetype=mimetype,
                device_id=request.form.get("deviceId"),
            )
        )
        if not result.success:
            return client_failure(result.translation if result.translation else result.transcription)
        return jsonify(result.to_mapping())

    transcription = run(services().speech.transcribe_audio(raw_data, mimetype, language))
    if not transcription.success:
        return client_failure(transcription)
    LOGGER.info("Handled /api/transcribe upload: duration=%.2fs", transcription.duration or 0)
    return jsonify(transcription.to_mapping())


@API.post("/speak")
def api_speak():
    payload = request.get_json(silent=True) or {}
    result = run(
        services().speech.synthesize_speech(
            str(payload.get("text") or ""), str(payload.get("languageCode") or "en")
        )
    )
    if not result.success or result.audio is None:
        return client_failure(result)
    return send_file(
        io.BytesIO(result.audio.data),
        mimetype=result.audio.mimetype,
        as_attachment=False,
        download_name="speech.mp3",
    )


# ---------------------------------------------------------------------------
# History & preferences
# ---------------------------------------------------------------------------


@API.get("/history")
def api_history() -> Response:
    user = require_user()
    entries = run(
        services().history.list_entries(
            user.id,
            entry_type=request.args.get("type"),
            query=request.args.get("q"),
        )
    )
    return jsonify([entry.to_mapping() for entry in entries])


@API.delete("/history")
def api_clear_history() -> Response:
    user = require_user()
    run(services().history.clear(user.id))
    return jsonify({"ok": True})


@API.delete("/history/<entry_id>")
def api_delete_history_entry(entry_id: str) -> Response:
    user = require_user()
    run(services().history.delete(entry_id, user_id=user.id))
    return jsonify({"ok": True})


@API.get("/theme")
def api_get_theme() -> Response:
    return jsonify({"theme": run(services().theme.get())})


@API.post("/theme")
def api_set_theme() -> Response:
    payload = request.get_json(silent=True) or {}
    theme = services().theme
    value = run(theme.toggle()) if payload.get("toggle") else run(theme.set(str(payload.get("theme") or "")))
    return jsonify({"theme": value})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def services() -> Services:
    return current_app.extensions["transconnect"]


def run(coro: Coroutine[Any, Any, T]) -> T:
    return current_app.extensions["transconnect_runner"].run(coro)


def require_user() -> UserRecord:
    user = run(services().session.current())
    if user is None:
        raise NotSignedInError()
    return user


def subscription_payload(user: UserRecord, device_id: str | None) -> dict[str, Any]:
    meter = services().meter
    subscription = run(meter.get_subscription(user.id))
    payload = subscription.to_mapping()
    payload["usage"] = run(meter.get_usage(user.id))
    payload["limit"] = quota_for(subscription.plan)
    if device_id is not None:
        payload["deviceAllowed"] = run(meter.check_device(user.id, device_id))
    return payload


def json_error(code: str, message: str, status: int):
    payload = {"error": {"code": code, "message": message}}
    return jsonify(payload), status


def client_failure(result: Any):
    """Error response for a failed client result, keeping the raw cause."""
    category = result.error_category or ErrorCategory.OTHER
    payload = {
        "error": {
            "code": category.value,
            "message": result.user_message or "Request failed",
            "detail": result.error,
        }
    }
    return jsonify(payload), _STATUS_BY_CATEGORY[category]


def _status_for(exc: TransConnectError) -> int:
    for error_type, status in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    if isinstance(exc, NotSignedInError):
        return 401
    if isinstance(exc, ForbiddenError):
        return 403
    return 400


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).lower() in {"1", "true", "yes", "on"}


def _normalize_language(value: Any) -> str | None:
    if value in (None, "", "default"):
        return None
    return str(value)


if __name__ == "__main__":  # pragma: no cover - manual execution
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="0.0.0.0", port=8080)
