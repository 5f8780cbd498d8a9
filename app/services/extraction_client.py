"""
Extraction Client
=================
Single structured-output model call per policy document.

The model receives the document inline together with the selected insurer
and policy category, and must answer with exactly the 29 schema fields as
strings. Any deviation fails the whole call: a record is either complete
or not returned at all.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.exceptions import ExtractionError
from app.core.openai_client import get_openai_client
from app.models.field_schema import FIELD_COUNT, FIELD_ORDER, field_description, is_field

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert insurance data extractor. You read policy documents and return structured data only."

EXTRACTION_PROMPT = """ACT AS AN EXPERT INSURANCE DATA EXTRACTOR.
EXTRACT DATA FROM THIS {policy_type} POLICY ISSUED BY {company}.

DOCUMENT TYPE: Scanned/Digital PDF or Image.
QUALITY: If the document is scanned or noisy, perform intensive OCR and deskew in-model.

STRICT RULES:
1. EXTRACT EXACTLY {field_count} FIELDS.
2. NORMALIZE DATES TO DD-MM-YYYY.
3. NORMALIZE PREMIUMS AND AMOUNTS TO DIGITS ONLY.
4. IF A FIELD IS NOT FOUND, RETURN "".
"""


def build_response_schema() -> Dict[str, Any]:
    """JSON schema constraining the answer to the field schema key set."""
    return {
        "type": "object",
        "properties": {
            field: {"type": "string", "description": field_description(field)}
            for field in FIELD_ORDER
        },
        "required": list(FIELD_ORDER),
        "additionalProperties": False,
    }


def build_prompt(company: str, policy_type: str) -> str:
    return EXTRACTION_PROMPT.format(
        policy_type=policy_type or "INSURANCE",
        company=company or "AN UNSPECIFIED INSURER",
        field_count=FIELD_COUNT,
    )


def build_document_part(content: bytes, mime_type: str, filename: str) -> Dict[str, Any]:
    """Inline the document as a base64 data URL in the shape the API expects."""
    encoded = base64.b64encode(content).decode('utf-8')
    data_url = f"data:{mime_type};base64,{encoded}"
    if mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": data_url}}
    return {"type": "file", "file": {"filename": filename, "file_data": data_url}}


def parse_extraction_payload(raw_content: Optional[str]) -> Dict[str, str]:
    """
    Turn the model's answer into an extraction record.

    Raises:
        ExtractionError: If the answer is empty, not a JSON object, or its
            keys or value types do not match the field schema
    """
    if not raw_content or not raw_content.strip():
        raise ExtractionError("Model returned an empty response")

    try:
        data = json.loads(raw_content)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model response is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise ExtractionError(f"Model response must be a JSON object, got {type(data).__name__}")

    missing = [field for field in FIELD_ORDER if field not in data]
    if missing:
        raise ExtractionError(f"Model response is missing {len(missing)} field(s): {', '.join(missing)}")

    unexpected = sorted(key for key in data if not is_field(key))
    if unexpected:
        raise ExtractionError(f"Model response has unexpected field(s): {', '.join(unexpected)}")

    not_strings = [field for field in FIELD_ORDER if not isinstance(data[field], str)]
    if not_strings:
        raise ExtractionError(f"Model response has non-string value(s) for: {', '.join(not_strings)}")

    return {field: data[field] for field in FIELD_ORDER}


class ExtractionClient:
    """Wraps the external document-understanding model."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
    ):
        self._client = client
        self.model = model or settings.AI_MODEL

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    async def extract(
        self,
        content: bytes,
        mime_type: Optional[str],
        company: str,
        policy_type: str,
        filename: str = "document",
    ) -> Dict[str, str]:
        """
        Extract the field schema from one document.

        Args:
            content: Raw document bytes
            mime_type: Declared MIME type; the PDF default is used when empty
            company: Selected insurance company (advisory context)
            policy_type: Selected policy category (advisory context)
            filename: Display name passed along with PDF content

        Returns:
            Extraction record with every schema field present

        Raises:
            ExtractionError: On transport failure or a non-conforming response
        """
        mime_type = mime_type or settings.DEFAULT_MIME_TYPE

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_prompt(company, policy_type)},
                    build_document_part(content, mime_type, filename),
                ],
            },
        ]

        logger.info(f"🤖 Extracting {filename} ({mime_type}, {len(content)} bytes) with {self.model}")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=settings.TEMPERATURE,
                max_tokens=settings.MAX_TOKENS,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "policy_extraction",
                        "strict": True,
                        "schema": build_response_schema(),
                    },
                },
            )
        except openai.APITimeoutError as e:
            raise ExtractionError("Extraction request timed out") from e
        except openai.APIConnectionError as e:
            raise ExtractionError(f"Could not reach the extraction model: {e}") from e
        except openai.APIStatusError as e:
            raise ExtractionError(f"Extraction model returned HTTP {e.status_code}: {e.message}") from e
        except openai.OpenAIError as e:
            raise ExtractionError(f"Extraction request failed: {e}") from e

        if not response.choices:
            raise ExtractionError("Model returned no choices")

        message = response.choices[0].message
        if getattr(message, "refusal", None):
            raise ExtractionError(f"Model refused the request: {message.refusal}")

        record = parse_extraction_payload(message.content)
        filled = sum(1 for value in record.values() if value.strip())
        logger.info(f"✅ Extracted {filled}/{FIELD_COUNT} fields from {filename}")
        return record
