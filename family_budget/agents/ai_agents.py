"""
AI Agents for Family Budget

Both agents wrap Gemini. Neither one ever writes to storage.

CRITICAL BOUNDARIES:

1. RECEIPT AGENT:
   - CAN: Read date, total, merchant, currency and a category from a photo
   - CANNOT: Persist data; its output only prefills the entry form
   - CANNOT: Invent values; unreadable fields come back empty

2. INSIGHT AGENT:
   - CAN: Answer questions FROM the transactions it is given
   - CANNOT: Mix currencies in its arithmetic
   - MUST: Say so when there is no data to analyze

The Ma'aser ledger is never computed by the LLM. Numbers the user relies on
come from the deterministic ledger code.
"""

import io
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import google.generativeai as genai
import structlog
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from family_budget.config import get_settings
from family_budget.models.constants import EXPENSE_CATEGORIES
from family_budget.models.transaction import ReceiptData, Transaction


logger = structlog.get_logger(__name__)

# Larger photos are scaled down before upload
MAX_RECEIPT_EDGE_PX = 1600

RECEIPT_PROMPT = f"""Analyze this receipt image. Extract the following details in JSON format:
- date (YYYY-MM-DD format)
- totalAmount (number)
- merchant (string)
- currency ('ILS' for Shekels/NIS, 'USD' for Dollars)
- category (one of: {', '.join(EXPENSE_CATEGORIES)})

Use null for anything you cannot read. Do not guess.
Return ONLY the JSON object."""

NO_DATA_ANSWER = (
    "I don't have any transactions for the selected years to analyze. "
    "Add some entries or pick another year."
)
FAILURE_ANSWER = "Sorry, I encountered an error while analyzing your data."


class ReceiptParsingError(Exception):
    """The receipt photo could not be read."""
    pass


def _build_model(max_output_tokens: int, response_mime_type: Optional[str] = None):
    """Configure Google Generative AI and return a model handle."""
    settings = get_settings().gemini
    genai.configure(api_key=settings.api_key)
    generation_config = {
        "temperature": settings.temperature,
        "max_output_tokens": max_output_tokens,
    }
    if response_mime_type:
        generation_config["response_mime_type"] = response_mime_type
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config=generation_config,
    )


def _extract_json(text: str) -> dict[str, Any]:
    """Find the JSON object in a model reply."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ReceiptParsingError("No JSON object in model response")
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ReceiptParsingError(f"Model returned invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ReceiptParsingError("Model returned a JSON value that is not an object")
    return data


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() and amount >= 0 else None


class ReceiptAgent:
    """
    Reads a receipt photo into ReceiptData.

    BOUNDARIES:
    - NEVER persists data
    - Categories outside the expense list fall back to "Other"
    """

    def __init__(self, model=None):
        """
        Args:
            model: Anything with an async `generate_content_async`. Built from
                   the Gemini settings when omitted.
        """
        self._model = model or _build_model(512, "application/json")
        self._max_bytes = get_settings().app.max_receipt_size_bytes

    def _load_image(self, image_bytes: bytes, mime_type: str) -> Image.Image:
        if not mime_type.startswith("image/"):
            raise ReceiptParsingError(f"Unsupported file type: {mime_type}")
        if len(image_bytes) > self._max_bytes:
            raise ReceiptParsingError(
                f"Image is too large ({len(image_bytes) / 1024 / 1024:.1f} MB)"
            )
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ReceiptParsingError(f"Could not open image: {e}")

        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.thumbnail((MAX_RECEIPT_EDGE_PX, MAX_RECEIPT_EDGE_PX))
        return image

    async def parse_receipt(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> ReceiptData:
        """
        Extract receipt fields from a photo.

        Raises:
            ReceiptParsingError: If the image is unusable or the model reply
                                 cannot be parsed
        """
        image = self._load_image(image_bytes, mime_type)

        try:
            response = await self._model.generate_content_async([image, RECEIPT_PROMPT])
            text = response.text
        except Exception as e:
            raise ReceiptParsingError(f"Gemini request failed: {e}")

        data = _extract_json(text or "")

        category = data.get("category")
        if category not in EXPENSE_CATEGORIES:
            category = "Other"

        try:
            receipt = ReceiptData(
                date=data.get("date"),
                total_amount=_to_decimal(data.get("totalAmount", data.get("total_amount"))),
                merchant=(data.get("merchant") or None),
                category=category,
                currency=data.get("currency"),
            )
        except ValidationError as e:
            raise ReceiptParsingError(f"Unexpected receipt fields: {e}")
        logger.info(
            "receipt_parsed",
            merchant=receipt.merchant,
            has_amount=receipt.total_amount is not None,
        )
        return receipt


def summarize_for_prompt(transactions: Iterable[Transaction]) -> str:
    """One line per transaction, amounts tagged with their currency symbol."""
    return "\n".join(
        f"{t.date.isoformat()}: {t.description} ({t.category}) - "
        f"{t.currency.symbol}{t.amount} [{t.type.value}]"
        for t in transactions
    )


class InsightAgent:
    """
    Answers free-form questions about the family's spending.

    The model only sees the transactions passed in.
    """

    def __init__(self, model=None):
        self._model = model or _build_model(get_settings().gemini.max_tokens)

    async def answer(
        self,
        question: str,
        transactions: list[Transaction],
    ) -> str:
        """Never raises; failures come back as an apology string."""
        if not transactions:
            return NO_DATA_ANSWER

        prompt = f"""You are a helpful financial assistant for a family. Here is a list of the family's transactions:

{summarize_for_prompt(transactions)}

User question: "{question}"

Answer using ONLY the data above, helpfully and concisely.
There are two currencies (ILS and USD). Never add or compare amounts across them.
If the user asks for advice, be encouraging but realistic."""

        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("insight_generation_failed", error=str(e))
            return FAILURE_ANSWER

        return text or "I couldn't generate an insight at this time."
