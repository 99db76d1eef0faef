from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import UpstreamError
from .openai_client import OpenAIClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a BDC (business development center) assistant for a car dealership.
You draft the next message a sales rep will send to a customer in a live chat or text thread.
- Write in the rep's voice, first person, warm and professional. No emojis, no slang.
- Keep each reply short: one to three sentences, ready to send as-is.
- Never invent prices, payments, incentives, trade values or vehicle availability. Offer to check instead.
- When it fits the conversation, move toward a concrete next step (appointment, test drive, call).
- Do not repeat a question the customer already answered.
- Respond ONLY with JSON of the form {"suggestions": ["reply 1", "reply 2", "reply 3"]} with 1 to 3 replies.
"""

MAX_TURNS = 60
MAX_SUGGESTIONS = 3

BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-*•]+|\(?\d+[.):]|[A-Za-z][.)])\s+")
CODE_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class ChatTurn(BaseModel):
    sender: Literal["customer", "rep"]
    text: Optional[str] = ""
    time: Optional[Union[str, float]] = None


class LeadInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    vehicle_year: Optional[Union[int, str]] = Field(None, alias="vehicleYear")
    vehicle_make: Optional[str] = Field(None, alias="vehicleMake")
    vehicle_model: Optional[str] = Field(None, alias="vehicleModel")
    status: Optional[str] = None
    source: Optional[str] = None


class PageInfo(BaseModel):
    channel: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None


class ReplyRequest(BaseModel):
    messages: List[ChatTurn] = []
    lead: Optional[LeadInfo] = None
    page: Optional[PageInfo] = None


class ReplyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggestions: List[str] = []
    ai_generated: Optional[bool] = Field(None, alias="aiGenerated")
    error: Optional[str] = None
    detail: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class EmptyConversationError(ValueError):
    pass


class SuggestionPayload(BaseModel):
    suggestions: List[str]


@dataclass
class ParsedSuggestions:
    """kind is "json", "lines" or "empty"; error is only set for "empty"."""

    kind: str
    items: List[str] = field(default_factory=list)
    error: Optional[str] = None


# ---------------------- INPUT ----------------------


def sanitize_turns(turns: List[ChatTurn], max_turns: int = MAX_TURNS) -> List[ChatTurn]:
    """Keep the most recent turns, trimmed, without empty ones."""
    cleaned = []
    for turn in turns[-max_turns:]:
        text = (turn.text or "").strip()
        if text:
            cleaned.append(ChatTurn(sender=turn.sender, text=text, time=turn.time))
    return cleaned


def _context_lines(lead: Optional[LeadInfo], page: Optional[PageInfo]) -> List[str]:
    lines: List[str] = []
    if lead is not None:
        vehicle = " ".join(
            str(part).strip()
            for part in (lead.vehicle_year, lead.vehicle_make, lead.vehicle_model)
            if part is not None and str(part).strip()
        )
        lead_fields = [
            ("Customer name", lead.name),
            ("Vehicle of interest", vehicle),
            ("Lead status", lead.status),
            ("Lead source", lead.source),
        ]
        lead_lines = [f"- {label}: {value.strip()}" for label, value in lead_fields if value and value.strip()]
        if lead_lines:
            lines.append("Lead:")
            lines.extend(lead_lines)
    if page is not None:
        page_fields = [("Channel", page.channel), ("Page title", page.title), ("Page URL", page.url)]
        page_lines = [f"- {label}: {value.strip()}" for label, value in page_fields if value and value.strip()]
        if page_lines:
            lines.append("Page:")
            lines.extend(page_lines)
    return lines


def build_prompt(
    turns: List[ChatTurn],
    lead: Optional[LeadInfo] = None,
    page: Optional[PageInfo] = None,
) -> List[Dict[str, str]]:
    parts = _context_lines(lead, page)
    if parts:
        parts.append("")
    parts.append("Conversation so far:")
    for turn in turns:
        speaker = "Customer" if turn.sender == "customer" else "Rep"
        parts.append(f"{speaker}: {turn.text}")
    parts.append("")
    parts.append(
        "Suggest 1 to 3 short, professional replies the rep could send next. "
        'Return JSON: {"suggestions": [...]}.'
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n".join(parts)},
    ]


# ---------------------- OUTPUT ----------------------


def _clean_line(line: str) -> str:
    line = BULLET_PREFIX_RE.sub("", line).strip()
    if len(line) >= 2 and line[0] == line[-1] and line[0] in "\"'":
        line = line[1:-1].strip()
    return line


def _string_items(values: list) -> List[str]:
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _from_json(data: object) -> ParsedSuggestions:
    """Structured output in an unexpected shape. Never line-split it."""
    if isinstance(data, list):
        items = _string_items(data)
    elif isinstance(data, dict):
        items = []
        for value in data.values():
            if isinstance(value, list):
                items = _string_items(value)
                if items:
                    break
    elif isinstance(data, str):
        items = _string_items([data])
    else:
        items = []
    if items:
        return ParsedSuggestions(kind="json", items=items)
    return ParsedSuggestions(kind="empty", error="JSON response had no list of replies")


def parse_suggestions(text: str) -> ParsedSuggestions:
    """
    Strict decode first ({"suggestions": [...]}), then any other JSON value
    holding a list of strings. Only text that is not JSON at all falls back
    to one suggestion per line.
    """
    raw = CODE_FENCE_RE.sub("", (text or "").strip())
    if not raw:
        return ParsedSuggestions(kind="empty", error="empty response")

    try:
        payload = SuggestionPayload.model_validate_json(raw)
        return ParsedSuggestions(kind="json", items=_string_items(payload.suggestions))
    except ValidationError:
        pass

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        pass
    else:
        return _from_json(data)

    lines = [_clean_line(line) for line in raw.splitlines()]
    lines = [line for line in lines if line and re.search(r"\w", line)]
    if lines:
        return ParsedSuggestions(kind="lines", items=lines)
    return ParsedSuggestions(kind="empty", error="no usable lines in response")


def dedupe_suggestions(items: List[str], limit: int = MAX_SUGGESTIONS) -> List[str]:
    seen = set()
    unique: List[str] = []
    for item in items:
        key = " ".join(item.lower().split())
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(" ".join(item.split()))
        if len(unique) >= limit:
            break
    return unique


# ---------------------- SERVICE ----------------------


class ReplyService:
    def __init__(self, llm: OpenAIClient):
        self.llm = llm

    def suggest(self, payload: ReplyRequest) -> ReplyResponse:
        turns = sanitize_turns(payload.messages)
        if not turns:
            raise EmptyConversationError("At least one non-empty message is required.")

        prompt = build_prompt(turns, payload.lead, payload.page)
        content = self.llm.chat(prompt)

        parsed = parse_suggestions(content)
        if parsed.kind == "lines":
            logger.info("Model ignored the JSON contract, used line fallback")
        suggestions = dedupe_suggestions(parsed.items)
        if not suggestions:
            raise UpstreamError(
                "upstream_error",
                "The AI provider returned no usable suggestions.",
                status_code=500,
                detail=parsed.error,
            )
        return ReplyResponse(suggestions=suggestions, ai_generated=True)
