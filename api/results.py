"""Vercel serverless function for judging results, exports and score submission."""

import json
import logging
import sys
from functools import lru_cache
from pathlib import Path

# Add the project root to the path so we can import the judging package
sys.path.insert(0, str(Path(__file__).parent.parent))

from judging.access import verify_caller
from judging.config import get_settings
from judging.errors import (
    AccessDeniedError,
    GroupClosedError,
    InvalidCredential,
    NotFoundError,
    TransientError,
    ValidationError,
)
from judging.export import iter_csv
from judging.service import JudgingService, build_service

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_service() -> JudgingService:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    return build_service(settings)


def handler(request):
    """Handle incoming judging requests.

    Accepts POST with a JSON body carrying an ``action``:
    - ``{"action": "results", "slug": "...", "password": "..."}``: results
      snapshot. Admin callers (``X-Caller-Id`` header, vouched for by an
      HMAC in ``X-Caller-Signature``) get the full view, everyone else the
      public view without per-judge detail.
    - ``{"action": "export", "slug": "..."}``: CSV of every rating (admin only).
    - ``{"action": "score", "session": "...", "submission_id": "...",
      "criterion_id": "...", "rating": 4, "comment": "..."}``: record a rating.

    Returns JSON (or CSV for exports).
    """
    # Handle CORS preflight
    if request.method == "OPTIONS":
        return create_response(
            "",
            status=204,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "POST, OPTIONS",
                "Access-Control-Allow-Headers": "Content-Type, X-Caller-Id, X-Caller-Signature",
            },
        )

    if request.method != "POST":
        return create_response(
            {"error": "Method not allowed. Use POST."},
            status=405,
        )

    try:
        body = request.body.decode("utf-8")
        data = json.loads(body)
        if not isinstance(data, dict):
            return create_response({"error": "Request body must be a JSON object"}, status=400)

        caller_id = authenticated_caller(request.headers)
        action = data.get("action", "results")
        service = get_service()

        if action == "results":
            group = service.get_group_by_slug(_required(data, "slug"))
            snapshot = service.get_group_results(group.id, data.get("password"), caller_id)
            public = not service.gate.is_admin(caller_id)
            return create_response(snapshot.to_dict(public=public))

        if action == "export":
            group = service.get_group_by_slug(_required(data, "slug"))
            rows = service.export_csv(group.id, caller_id=caller_id)
            return create_response(
                "".join(iter_csv(rows)),
                headers={
                    "Content-Type": "text/csv",
                    "Content-Disposition": f'attachment; filename="{group.slug}_scores.csv"',
                },
            )

        if action == "score":
            score = service.submit_score_by_session(
                _required(data, "session"),
                _required(data, "submission_id"),
                _required(data, "criterion_id"),
                data.get("rating"),
                data.get("comment"),
            )
            return create_response({
                "submission_id": score.submission_id,
                "criterion_id": score.criterion_id,
                "rating": score.rating,
                "comment": score.comment,
            })

        return create_response({"error": f"Unknown action: {action}"}, status=400)

    except ValidationError as e:
        return create_response({"error": str(e), "violations": e.violations}, status=400)
    except InvalidCredential as e:
        return create_response({"error": str(e), "reason": e.reason}, status=401)
    except AccessDeniedError as e:
        return create_response({"error": str(e), "reason": e.reason}, status=403)
    except NotFoundError as e:
        return create_response({"error": str(e)}, status=404)
    except GroupClosedError as e:
        return create_response({"error": str(e), "reason": e.reason}, status=409)
    except TransientError as e:
        logger.warning("Transient failure serving request: %s", e)
        return create_response({"error": str(e)}, status=503)
    except json.JSONDecodeError as e:
        return create_response(
            {"error": f"Invalid JSON: {e}"},
            status=400,
        )
    except Exception as e:
        logger.exception("Unexpected error serving request")
        return create_response(
            {"error": f"Internal error: {e}"},
            status=500,
        )


def authenticated_caller(headers) -> str | None:
    """The ``X-Caller-Id`` header, if ``X-Caller-Signature`` vouches for it."""
    caller_id = headers.get("x-caller-id")
    if not caller_id:
        return None
    if verify_caller(caller_id, headers.get("x-caller-signature"), get_settings().caller_secret):
        return caller_id
    logger.warning("Ignoring unverified caller id %r", caller_id)
    return None


def _required(data: dict, key: str):
    value = data.get(key)
    if not value:
        raise ValidationError(f"Missing {key!r} in request body")
    return value


def create_response(body, status: int = 200, headers: dict = None):
    """Create a response object for Vercel."""
    response_headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
    }
    if headers:
        response_headers.update(headers)

    if isinstance(body, dict):
        body = json.dumps(body)

    # Return in format expected by Vercel Python runtime
    return {
        "statusCode": status,
        "headers": response_headers,
        "body": body,
    }
