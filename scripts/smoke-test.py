#!/usr/bin/env python3
"""
Smoke test for burnlink deployments.

Deploy guardrail: fast, deterministic, actionable failures (step name,
HTTP status and body preview). Uses only the standard library so it can
run from any CI box.

Flow (default):
1. Health check
2. Create a one-time, password-protected secret
3. View without password is refused (password_required)
4. View with the password returns the content
5. Second view is refused (already_consumed)
6. Create + delete a reusable secret, then view returns not_found

Usage:
    ./scripts/smoke-test.py https://staging.example.com
    ./scripts/smoke-test.py https://staging.example.com --health-only
"""

import argparse
import json
import random
import secrets
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_BACKOFF_SECONDS = 4.0
BODY_PREVIEW_CHARS = 500
SMOKE_EXPIRY_MINUTES = 15


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body[:BODY_PREVIEW_CHARS]}")
        self.status_code = status_code
        self.body = body

    @property
    def code(self) -> str | None:
        try:
            return json.loads(self.body).get("code")
        except (json.JSONDecodeError, AttributeError):
            return None


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _is_retryable_status(status_code: int) -> bool:
    # 429 is deliberately absent: it is an expected answer from the view limiter
    return status_code in {408, 425, 502, 503, 504, 522, 524}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> tuple[int, bytes]:
        max_attempts = max(1, self.retries + 1)
        for attempt in range(1, max_attempts + 1):
            try:
                request = Request(url, data=body, headers=headers or {}, method=method)
                try:
                    with urlopen(request, timeout=self.timeout_seconds) as response:
                        return response.getcode(), response.read()
                except HTTPError as e:
                    error_body = e.read() if e.fp else b""
                    if attempt < max_attempts and _is_retryable_status(e.code):
                        self._sleep_backoff(attempt)
                        continue
                    return e.code, error_body
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e
        raise RuntimeError("HTTP client exhausted retries")

    def api_json(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}/api/v1{path}"
        headers = {"Content-Type": "application/json"}
        body = json.dumps(data).encode() if data is not None else None
        status, raw = self.request(method, url, headers=headers, body=body)
        text = raw.decode("utf-8", errors="replace")
        if status < 200 or status >= 300:
            raise ApiError(status, text)
        return json.loads(text)

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.retry_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.random() * self.retry_backoff_seconds
        time.sleep(min(MAX_BACKOFF_SECONDS, base + jitter))


def expect_api_error(code: str, call: Callable[[], Any]) -> None:
    try:
        call()
    except ApiError as e:
        if e.code != code:
            raise RuntimeError(f"Expected error code '{code}', got {e.status_code} {e.code}") from e
        return
    raise RuntimeError(f"Expected error code '{code}', request succeeded")


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int = 30
    secret_id: str | None = None
    password: str = field(default_factory=lambda: secrets.token_urlsafe(12))
    content: str = field(default_factory=lambda: f"smoke-{secrets.token_hex(8)}")

    def require_secret_id(self) -> str:
        if not self.secret_id:
            raise RuntimeError("No secret created yet")
        return self.secret_id


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    for attempt in range(1, max_attempts + 1):
        try:
            status, body = client.request("GET", f"{client.base_url}/health")
            if status == 200 and json.loads(body).get("status") == "healthy":
                return True
            log(f"Health attempt {attempt}/{max_attempts}: HTTP {status}")
        except (RuntimeError, json.JSONDecodeError) as e:
            log(f"Health attempt {attempt}/{max_attempts}: {e}")
        time.sleep(delay)
    return False


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_create_secret(ctx: SmokeContext) -> None:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=SMOKE_EXPIRY_MINUTES)
    created = ctx.client.api_json(
        "POST",
        "/secrets",
        data={
            "content": ctx.content,
            "password": ctx.password,
            "expires_at": expires_at.replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "one_time_access": True,
        },
    )
    ctx.secret_id = created["id"]
    if not created["share_url"].endswith(f"/secret/{ctx.secret_id}"):
        raise RuntimeError(f"Unexpected share_url: {created['share_url']}")
    log(f"Secret created: id={ctx.secret_id}")


def step_view_requires_password(ctx: SmokeContext) -> None:
    secret_id = ctx.require_secret_id()
    expect_api_error(
        "password_required",
        lambda: ctx.client.api_json("POST", f"/secrets/{secret_id}/view", data={}),
    )


def step_view_with_password(ctx: SmokeContext) -> None:
    secret_id = ctx.require_secret_id()
    viewed = ctx.client.api_json(
        "POST", f"/secrets/{secret_id}/view", data={"password": ctx.password}
    )
    if viewed.get("content") != ctx.content:
        raise RuntimeError("Viewed content does not match what was stored")
    if viewed.get("one_time_access") is not True:
        raise RuntimeError("Expected one_time_access=true")


def step_second_view_refused(ctx: SmokeContext) -> None:
    secret_id = ctx.require_secret_id()
    expect_api_error(
        "already_consumed",
        lambda: ctx.client.api_json(
            "POST", f"/secrets/{secret_id}/view", data={"password": ctx.password}
        ),
    )


def step_delete(ctx: SmokeContext) -> None:
    created = ctx.client.api_json("POST", "/secrets", data={"content": ctx.content})
    secret_id = created["id"]
    ctx.client.api_json("DELETE", f"/secrets/{secret_id}")
    expect_api_error(
        "not_found",
        lambda: ctx.client.api_json("POST", f"/secrets/{secret_id}/view", data={}),
    )


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    overall_start = time.time()
    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            log(f"FAILED: {step.name} ({time.time() - start:.2f}s) - {e}")
            log(f"Total: {time.time() - overall_start:.2f}s")
            return False
        log(f"OK: {step.name} ({time.time() - start:.2f}s)")
    log(f"Total: {time.time() - overall_start:.2f}s")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="burnlink smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://staging.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    try:
        client = HttpClient(
            base_url=args.base_url.rstrip("/"),
            timeout_seconds=args.timeout,
            retries=args.retries,
        )
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            steps.extend(
                [
                    Step("create secret", step_create_secret),
                    Step("view requires password", step_view_requires_password),
                    Step("view with password", step_view_with_password),
                    Step("second view refused", step_second_view_refused),
                    Step("delete", step_delete),
                ]
            )

        return 0 if run_steps(ctx, steps) else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
