import json
import logging
from datetime import tzinfo
from typing import Any, Dict, List, Optional, Sequence

import httpx

from timekeeper.config import settings
from timekeeper.exceptions import InsightUnavailable
from timekeeper.schemas.insight import InsightResult
from timekeeper.schemas.report import LogWithBreaks
from timekeeper.utils.time_utils import get_report_timezone, hours_between, minutes_between

logger = logging.getLogger(__name__)

UNAVAILABLE_TEXT = "Insights are not available right now."


def serialize_logs(items: Sequence[LogWithBreaks], tz: Optional[tzinfo] = None) -> List[Dict[str, Any]]:
    """Reduce logs to the compact shape sent to the completion service."""
    tz = tz or get_report_timezone()
    serialized = []
    for item in items:
        log = item.log
        check_in = log.check_in.astimezone(tz)
        if log.check_out is not None:
            check_out = log.check_out.astimezone(tz).strftime("%H:%M")
            duration = f"{hours_between(log.check_in, log.check_out):.2f} hours"
        else:
            check_out = None
            duration = "In progress"

        serialized.append({
            "date": check_in.date().isoformat(),
            "checkIn": check_in.strftime("%H:%M"),
            "checkOut": check_out,
            "duration": duration,
            "breaks": [
                {
                    "duration": f"{minutes_between(brk.start_time, brk.end_time):.0f}" if brk.end_time else "ongoing",
                    "type": "paid" if brk.is_paid else "unpaid",
                }
                for brk in item.breaks
            ],
        })
    return serialized


def build_insight_messages(serialized: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {
            "role": "system",
            "content": "You are a helpful time management assistant. "
                       "Analyze work patterns and provide brief, practical insights."
        },
        {
            "role": "user",
            "content": "Analyze this time log data and provide 3 key insights about work patterns "
                       "and a brief suggestion for improvement. Keep it concise and friendly: "
                       f"{json.dumps(serialized)}"
        },
    ]


def build_break_advice_messages(serialized: List[Dict[str, Any]], current_session_hours: float) -> List[Dict[str, str]]:
    return [
        {
            "role": "system",
            "content": "You are a smart work-break advisor. Analyze this work pattern and current session "
                       "to suggest when the user should take their next break. Consider typical work patterns, "
                       "time since last break, current session duration, and health and productivity factors. "
                       "Keep suggestions brief, friendly, and specific."
        },
        {
            "role": "user",
            "content": f"Work history: {json.dumps(serialized)}\n"
                       f"Current session duration: {current_session_hours:.2f} hours\n"
                       "Based on this data, when should I take my next break and why? "
                       "Keep the response under 2 sentences and be specific about timing."
        },
    ]


def extract_completion_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise InsightUnavailable("Completion response was not a JSON object")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise InsightUnavailable("Completion response missing choices")
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise InsightUnavailable("Completion response did not include text content")
    return content.strip()


class CompletionClient:
    """OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.url = url or settings.OPENAI_API_URL
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.INSIGHT_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key.strip():
            headers["Authorization"] = f"Bearer {self.api_key.strip()}"
        return headers

    async def complete(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float = 0.7) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise InsightUnavailable(f"Completion request failed ({e.response.status_code})") from e
        except httpx.HTTPError as e:
            raise InsightUnavailable(f"Completion request failed: {e}") from e
        except ValueError as e:
            raise InsightUnavailable("Completion service returned a non-JSON response") from e
        return extract_completion_text(data)


class InsightService:
    """
    Read-only boundary around the completion service. Failures degrade to an
    unavailable result and are never raised to the caller.
    """

    def __init__(self, client: Optional[CompletionClient] = None, tz: Optional[tzinfo] = None):
        self.client = client or CompletionClient()
        self.tz = tz or get_report_timezone()

    async def analyze(self, items: Sequence[LogWithBreaks]) -> InsightResult:
        messages = build_insight_messages(serialize_logs(items, self.tz))
        return await self._ask(messages, settings.INSIGHT_MAX_TOKENS)

    async def advise_break(self, items: Sequence[LogWithBreaks], current_session_hours: float) -> InsightResult:
        messages = build_break_advice_messages(serialize_logs(items, self.tz), current_session_hours)
        return await self._ask(messages, settings.BREAK_ADVICE_MAX_TOKENS)

    async def _ask(self, messages: List[Dict[str, str]], max_tokens: int) -> InsightResult:
        try:
            text = await self.client.complete(messages, max_tokens=max_tokens)
        except InsightUnavailable as e:
            logger.warning("Insight request failed: %s", e.message)
            return InsightResult(text=UNAVAILABLE_TEXT, available=False)
        return InsightResult(text=text)
