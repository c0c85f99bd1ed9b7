"""
llm_service.py

PDF enrichment with a multimodal model through litellm:
- AI summary of the paper
- primary institution of the authors
- exactly 3 topic labels from a controlled vocabulary
- free-form tag suggestions for auto-tagging

Nothing here touches the database; callers persist the result.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from json import JSONDecodeError
from typing import Any, Dict, List

import litellm
from litellm import completion

from ..config import Config
from ..errors import AnalysisFailed, ConfigurationError, ModelOutputMalformed
from ..model.paper import Enrichment

logger = logging.getLogger(__name__)

ALLOWED_TOPICS: List[str] = [
    "Distributed Machine Learning",
    "Model Performance Optimization",
    "Personalized Advertising",
    "Recommendation System",
    "Generative Recommendation",
    "Reinforcement Learning",
    "Agent",
    "Large Language Models",
    "Model Architecture",
]

TOPIC_COUNT = 3

SUGGEST_TEXT_LIMIT = 5000

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

_litellm_ready = False


def init_litellm() -> None:
    """
    Configure the litellm module once per process.
    """
    global _litellm_ready

    if not Config.chat_litellm.api_key:
        raise ConfigurationError(
            "No model credential configured (set CHAT_LITELLM__API_KEY)"
        )

    if _litellm_ready:
        return

    litellm.api_key = Config.chat_litellm.api_key
    if Config.chat_litellm.api_base:
        litellm.api_base = Config.chat_litellm.api_base
    _litellm_ready = True


def build_analysis_prompt() -> str:
    allowed = "\n".join(f"- {t}" for t in ALLOWED_TOPICS)
    prompt = f"""
Analyze the attached research paper and provide:
1. A concise summary focusing on main contributions, methodology, and key results.
2. The name of the primary company or research institution associated with the authors.
3. A list of exactly {TOPIC_COUNT} topic labels chosen ONLY from the allowed topics below.

Allowed Topics:
{allowed}

Return ONLY a JSON object with the following format:
{{
    "summary": "The summary text...",
    "institution": "The institution name...",
    "topics": ["Topic 1", "Topic 2", "Topic 3"]
}}
"""
    return prompt.strip()


# =========================================================
# 🔹 Model call
# =========================================================

def analyze_pdf(pdf_bytes: bytes) -> Enrichment:
    """
    Send the PDF to the model and parse the structured answer.

    Raises:
        ValueError: empty input
        ConfigurationError: no model credential
        AnalysisFailed: the model call failed

    Malformed model output is never raised; it degrades to a summary-only
    result (see ``parse_enrichment``).
    """
    if not pdf_bytes:
        raise ValueError("pdf_bytes must be a non-empty PDF buffer")

    init_litellm()

    encoded = base64.b64encode(pdf_bytes).decode("ascii")

    messages = [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": build_analysis_prompt()},
                {
                    "type": "file",
                    "file": {"file_data": f"data:application/pdf;base64,{encoded}"},
                },
            ],
        }
    ]

    try:
        resp = completion(
            model=Config.chat_litellm.model,
            messages=messages,
            api_key=Config.chat_litellm.api_key,
            api_base=Config.chat_litellm.api_base,
            temperature=Config.chat_litellm.temperature,
        )
    except Exception as e:
        logger.error(f"❌ Model call failed ({Config.chat_litellm.model}): {e}")
        raise AnalysisFailed(f"Failed to analyze PDF. {e}") from e

    text = resp.choices[0].message.content or ""
    return parse_enrichment(text)


def suggest_topics(text: str) -> List[str]:
    """
    Free-form tag suggestions (up to TOPIC_COUNT) for a paper's summary
    and title. Unlike ``analyze_pdf`` the labels are not restricted to
    ALLOWED_TOPICS.

    Best effort: any failure, including a missing credential, gives [].
    """
    if not text or not text.strip():
        return []

    prompt = (
        f"Suggest exactly {TOPIC_COUNT} short, relevant topics or tags for the following "
        'research paper text. Return ONLY a JSON array of strings, e.g., ["NLP", "Transformers", "LLM"]. '
        f"Text: {text[:SUGGEST_TEXT_LIMIT]}"
    )

    try:
        init_litellm()
        resp = completion(
            model=Config.chat_litellm.model,
            messages=[{"role": "user", "content": prompt}],
            api_key=Config.chat_litellm.api_key,
            api_base=Config.chat_litellm.api_base,
            temperature=Config.chat_litellm.temperature,
        )
        parsed = json.loads(_FENCE.sub("", resp.choices[0].message.content or "").strip())
    except Exception as e:
        logger.error(f"❌ Topic suggestion failed: {e}")
        return []

    if not isinstance(parsed, list):
        logger.warning("⚠️ Topic suggestion was not a JSON array")
        return []

    topics: List[str] = []
    for item in parsed:
        if isinstance(item, str) and item.strip() and item.strip() not in topics:
            topics.append(item.strip())
    return topics[:TOPIC_COUNT]


# =========================================================
# 🔹 Response parsing
# =========================================================

def parse_enrichment(text: str) -> Enrichment:
    """
    Defensive parse of the raw model reply.

    Falls back to ``Enrichment(summary=text, institution="", topics=[])``
    when no JSON object can be recovered.
    """
    try:
        data = _load_json_object(text)
    except ModelOutputMalformed:
        logger.warning(f"⚠️ Model reply was not JSON, keeping raw text as summary ({len(text)} chars)")
        return Enrichment(summary=text, institution="", topics=[])

    return Enrichment(
        summary=_as_text(data.get("summary")),
        institution=_as_text(data.get("institution")),
        topics=_clean_topics(data.get("topics")),
    )


def _load_json_object(text: str) -> Dict[str, Any]:
    cleaned = _FENCE.sub("", text or "").strip()

    try:
        parsed = json.loads(cleaned)
    except JSONDecodeError:
        parsed = _extract_first_json_object(cleaned)

    if not isinstance(parsed, dict):
        raise ModelOutputMalformed("Expected a JSON object in model output")
    return parsed


def _extract_first_json_object(content: str) -> Dict[str, Any]:
    """First decodable JSON object embedded in prose, if any."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    raise ModelOutputMalformed("No JSON object found in model output")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_topics(value: Any) -> List[str]:
    """
    Keep vocabulary labels only, de-duplicated, at most TOPIC_COUNT.
    """
    if not isinstance(value, list):
        return []

    topics: List[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        label = item.strip()
        if label not in ALLOWED_TOPICS:
            logger.warning(f"⚠️ Dropping topic outside vocabulary: '{label}'")
            continue
        if label not in topics:
            topics.append(label)

    return topics[:TOPIC_COUNT]
