"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_photo_generations_total: Dict[Tuple[str, str], int] = defaultdict(int)
_photo_provider_failures_total: Dict[Tuple[str, str], int] = defaultdict(int)
_chat_upstream_errors_total: Dict[str, int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_photo_generation(*, provider: str, reason: str = "") -> None:
    with _lock:
        key = (_normalize_label(provider), _normalize_label(reason, fallback="none"))
        _photo_generations_total[key] += 1


def record_photo_provider_failure(*, provider: str, reason: str) -> None:
    with _lock:
        _photo_provider_failures_total[(_normalize_label(provider), _normalize_label(reason))] += 1


def record_chat_upstream_error(*, status: str) -> None:
    with _lock:
        _chat_upstream_errors_total[_normalize_label(status)] += 1


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        generations_total = dict(_photo_generations_total)
        provider_failures_total = dict(_photo_provider_failures_total)
        chat_errors_total = dict(_chat_upstream_errors_total)

    lines = [
        "# HELP fathacks_build_info Build metadata.",
        "# TYPE fathacks_build_info gauge",
        (
            f'fathacks_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP fathacks_process_uptime_seconds Process uptime in seconds.",
        "# TYPE fathacks_process_uptime_seconds gauge",
        f"fathacks_process_uptime_seconds {uptime:.6f}",
        "# HELP fathacks_http_requests_total Total HTTP requests.",
        "# TYPE fathacks_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'fathacks_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP fathacks_http_request_duration_seconds Request duration summary.",
            "# TYPE fathacks_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'fathacks_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'fathacks_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP fathacks_photo_generations_total Photo generations by provider and fallback reason.",
            "# TYPE fathacks_photo_generations_total counter",
        ]
    )
    for (provider, reason), value in sorted(generations_total.items()):
        lines.append(
            (
                f'fathacks_photo_generations_total{{provider="{_escape_label(provider)}",'
                f'reason="{_escape_label(reason)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP fathacks_photo_provider_failures_total Upstream image provider failures.",
            "# TYPE fathacks_photo_provider_failures_total counter",
        ]
    )
    for (provider, reason), value in sorted(provider_failures_total.items()):
        lines.append(
            (
                f'fathacks_photo_provider_failures_total{{provider="{_escape_label(provider)}",'
                f'reason="{_escape_label(reason)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP fathacks_chat_upstream_errors_total Chat proxy upstream errors by status.",
            "# TYPE fathacks_chat_upstream_errors_total counter",
        ]
    )
    for status, value in sorted(chat_errors_total.items()):
        lines.append(f'fathacks_chat_upstream_errors_total{{status="{_escape_label(status)}"}} {value}')

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _photo_generations_total.clear()
        _photo_provider_failures_total.clear()
        _chat_upstream_errors_total.clear()
    _started_at = time.time()
