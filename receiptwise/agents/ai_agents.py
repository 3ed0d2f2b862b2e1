"""
AI Agents for ReceiptWise

DESIGN DECISION: The Gemini model is handed to each agent by its caller.
Nothing here configures a client at import time, so tests pass a mock
with an async ``generate_content_async`` and no network is touched.

CRITICAL BOUNDARIES:

1. RECEIPT EXTRACTION AGENT:
   - CAN: Read a receipt image or pasted text, suggest a category,
     flag a receipt as possibly fraudulent
   - CANNOT: Save anything; every extraction is PROPOSED data
   - MUST: Raise ExtractionFailedError when nothing usable came back

2. INSIGHTS AGENT:
   - CAN: Answer questions and write tips FROM the receipts it is given
   - CANNOT: Invent receipts or amounts
   - MUST: Degrade to an apology / empty list instead of raising

The LLM is a READER and an ADVISOR. Alerts and budgets are computed
deterministically elsewhere and never depend on it.
"""

import json
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
)

from receiptwise.config import GeminiSettings
from receiptwise.models.receipt import (
    Category,
    ExtractedReceiptData,
    LineItem,
    Receipt,
    ReceiptSource,
)


logger = structlog.get_logger(__name__)

APOLOGY_MESSAGE = "Sorry, I encountered an error. Please try again."
TOTAL_ONLY_ITEM = "Total Purchase"

_MONTH_DAY = re.compile(r"^(\d{1,2})[-/](\d{1,2})$")


class AgentError(Exception):
    """Base exception for model-backed operations."""
    pass


class ExtractionFailedError(AgentError):
    """The model could not produce receipt data."""
    pass


class ModelUnavailableError(ExtractionFailedError):
    """The model call itself failed after all retries."""
    pass


class CategorySuggestion(BaseModel):
    """AI's suggestion for a receipt category."""

    category: str = Category.OTHER.value
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    reasoning: str = ""


class FraudAssessment(BaseModel):
    """AI's opinion on whether a receipt looks fraudulent."""

    is_fraudulent: bool = False
    fraudulent_details: str = ""


class FinancialTip(BaseModel):
    """A single personalised recommendation."""

    type: str = Field(pattern="^(alternative|reorder|savings_tip)$")
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=1000)


def create_gemini_model(settings: GeminiSettings) -> Any:
    """Build a configured Gemini model from settings."""
    genai.configure(api_key=settings.api_key)
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config={
            "temperature": settings.temperature,
            "max_output_tokens": settings.max_tokens,
        },
    )


def _find_json(text: str) -> Optional[dict]:
    """Pull the outermost JSON object out of a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def _resolve_date(value: Any, today: date) -> Any:
    """Fill in the current year for month-day dates; leave the rest to the model."""
    if isinstance(value, str):
        match = _MONTH_DAY.match(value.strip())
        if match:
            month, day = int(match.group(1)), int(match.group(2))
            try:
                return date(today.year, month, day)
            except ValueError:
                return None
    return value


def _receipts_as_json(receipts: list[Receipt]) -> str:
    rows = [
        {
            "id": r.id,
            "date": r.purchase_date.isoformat() if r.purchase_date else None,
            "vendor": r.vendor,
            "totalAmount": float(r.total_amount),
            "category": r.category,
            "wallet": r.wallet.value,
            "isFraudulent": r.is_fraudulent,
            "itemizedList": [
                {"item": item.name, "price": float(item.price)}
                for item in r.line_items
            ],
        }
        for r in receipts
    ]
    return json.dumps(rows, ensure_ascii=False)


class _GeminiAgent:
    """Shared plumbing: retried calls to an injected model."""

    def __init__(
        self,
        model: Any,
        max_attempts: int = 3,
        wait=None,
    ):
        """
        Args:
            model: Object with an async ``generate_content_async`` method
            max_attempts: Attempts per call before giving up
            wait: tenacity wait strategy (exponential back-off by default)
        """
        self._model = model
        self._max_attempts = max_attempts
        if wait is None:
            wait = wait_exponential(multiplier=1, min=2, max=10)
        self._wait = wait

    async def _generate(self, contents: Any) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            reraise=True,
        ):
            with attempt:
                response = await self._model.generate_content_async(contents)
        return (response.text or "").strip()


class ReceiptExtractionAgent(_GeminiAgent):
    """
    AI agent for getting receipts into the wallet.

    RESPONSIBILITIES:
    - Extract vendor, date, total and items from an image or text
    - Suggest a category
    - Flag suspicious receipts

    BOUNDARIES:
    - NEVER persists data
    - ALWAYS defers to the user for confirmation
    """

    async def extract_from_image(self, image: Any) -> ExtractedReceiptData:
        """
        Extract receipt fields from an image.

        Args:
            image: A PIL image (already normalised by ReceiptImageService)

        Raises:
            ExtractionFailedError: If the model fails or returns no data
        """
        prompt = """You are an AI assistant that extracts data from a receipt image.

Extract the following information from the receipt:
- date: The date on the receipt (YYYY-MM-DD)
- vendor: The name of the vendor
- totalAmount: The total amount on the receipt
- itemizedList: The items on the receipt, each with "item" and "price"

Respond with ONLY a JSON object in this exact format:
{"date": "2024-07-15", "vendor": "Store", "totalAmount": 450.0, "itemizedList": [{"item": "Milk", "price": 50.0}]}"""

        return await self._extract(
            [prompt, image],
            source=ReceiptSource.IMAGE,
            today=None,
        )

    async def parse_text(self, text: str, today: date) -> ExtractedReceiptData:
        """
        Extract receipt fields from an SMS or email.

        Dates without a year are placed in ``today``'s year. Text that only
        carries a total becomes a single "Total Purchase" item.

        Raises:
            ExtractionFailedError: If the model fails or returns no data
        """
        if not text or not text.strip():
            raise ExtractionFailedError("Receipt text is empty")

        prompt = f"""You are an AI assistant that extracts structured data from text-based receipts (like SMS messages or emails).

Extract the following information:
- date: The date on the receipt (YYYY-MM-DD). If no year is specified, assume {today.year}.
- vendor: The name of the vendor (e.g., Zomato, Amazon, Swiggy)
- totalAmount: The total amount of the transaction
- itemizedList: A list of items with "item" and "price". If the text only contains a total, create a single item named '{TOTAL_ONLY_ITEM}' with the total amount.

For example, for "Your order with Zomato for Rs. 450 is confirmed on 15 July.", the output is
{{"date": "{today.year}-07-15", "vendor": "Zomato", "totalAmount": 450, "itemizedList": [{{"item": "{TOTAL_ONLY_ITEM}", "price": 450}}]}}

Text:
{text.strip()}

Respond with ONLY the JSON object."""

        extracted = await self._extract(
            prompt,
            source=ReceiptSource.TEXT,
            today=today,
            raw_text=text.strip(),
        )
        if not extracted.line_items and extracted.total_amount is not None:
            extracted = extracted.model_copy(update={
                "line_items": [
                    LineItem(name=TOTAL_ONLY_ITEM, price=extracted.total_amount)
                ],
            })
        return extracted

    async def _extract(
        self,
        contents: Any,
        source: ReceiptSource,
        today: Optional[date],
        raw_text: Optional[str] = None,
    ) -> ExtractedReceiptData:
        try:
            text = await self._generate(contents)
        except Exception as e:
            logger.warning("extraction_call_failed", source=source.value, error=str(e))
            raise ModelUnavailableError(
                "Failed to process receipt. The AI model might be unable to read the data."
            ) from e

        data = _find_json(text)
        if data is None:
            logger.warning("extraction_unparseable", source=source.value)
            raise ExtractionFailedError("The AI model returned no receipt data")

        items = []
        for entry in data.get("itemizedList") or []:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("item") or "").strip()
            price = _to_decimal(entry.get("price"))
            if name and price is not None:
                items.append(LineItem(name=name[:200], price=price))

        raw_date = data.get("date")
        if today is not None:
            raw_date = _resolve_date(raw_date, today)

        vendor = str(data.get("vendor") or "").strip() or None
        try:
            extracted = ExtractedReceiptData(
                source=source,
                vendor=vendor[:200] if vendor else None,
                purchase_date=raw_date,
                total_amount=_to_decimal(data.get("totalAmount")),
                line_items=items,
                raw_text=raw_text if raw_text is not None else text,
            )
        except ValidationError as e:
            raise ExtractionFailedError(f"Invalid receipt data: {e}") from e

        if extracted.is_empty:
            raise ExtractionFailedError("The AI model could not read the receipt")
        return extracted

    async def categorize(
        self,
        extracted: ExtractedReceiptData,
    ) -> CategorySuggestion:
        """
        Suggest a category for the extracted receipt.

        Falls back to Other with low confidence; the user can override.
        """
        categories = [c.value for c in Category]
        prompt = f"""You are categorizing a receipt for a personal expense tracker.

Receipt:
{self._describe(extracted)}

Available categories: {', '.join(categories)}

Respond with ONLY a JSON object in this exact format:
{{"category": "Groceries", "confidence": 0.8, "reasoning": "brief explanation"}}

Be conservative - if unsure, use "Other"."""

        try:
            data = _find_json(await self._generate(prompt))
            if data is not None:
                return CategorySuggestion(
                    category=Category.from_label(data.get("category")).value,
                    confidence=min(max(float(data.get("confidence", 0.5)), 0.0), 1.0),
                    reasoning=str(data.get("reasoning") or ""),
                )
        except Exception as e:
            logger.warning("categorize_failed", error=str(e))

        return CategorySuggestion(
            category=Category.OTHER.value,
            confidence=0.3,
            reasoning="Could not determine category - please select manually",
        )

    async def detect_fraud(
        self,
        extracted: ExtractedReceiptData,
    ) -> FraudAssessment:
        """
        Ask the model whether the receipt looks fraudulent.

        Falls back to "not fraudulent": a flag must come with a reason.
        """
        prompt = f"""You are an expert in fraud detection.
Determine whether this receipt is fraudulent. If it is, explain why.

Receipt:
{self._describe(extracted)}

Respond with ONLY a JSON object in this exact format:
{{"isFraudulent": false, "fraudulentDetails": ""}}"""

        try:
            data = _find_json(await self._generate(prompt))
            if data is not None:
                flagged = bool(data.get("isFraudulent"))
                details = str(data.get("fraudulentDetails") or "").strip()
                if flagged and not details:
                    details = "Flagged by automated review"
                return FraudAssessment(
                    is_fraudulent=flagged,
                    fraudulent_details=details[:1000] if flagged else "",
                )
        except Exception as e:
            logger.warning("fraud_check_failed", error=str(e))

        return FraudAssessment()

    @staticmethod
    def _describe(extracted: ExtractedReceiptData) -> str:
        return json.dumps(
            {
                "date": extracted.purchase_date.isoformat() if extracted.purchase_date else None,
                "vendor": extracted.vendor,
                "totalAmount": float(extracted.total_amount) if extracted.total_amount is not None else None,
                "itemizedList": [
                    {"item": item.name, "price": float(item.price)}
                    for item in extracted.line_items
                ],
            },
            ensure_ascii=False,
        )


class InsightsAgent(_GeminiAgent):
    """
    AI agent answering questions about the wallet and writing tips.

    CRITICAL: Answers are based ONLY on the receipts passed in.
    Failures never reach the UI; callers get an apology or no tips.
    """

    async def answer_question(
        self,
        question: str,
        receipts: list[Receipt],
        today: date,
    ) -> str:
        """Answer a question about the given receipts."""
        if not question or not question.strip():
            return APOLOGY_MESSAGE

        prompt = f"""You are a helpful AI assistant for a receipt management app.
Answer the user's question based on their receipt data.
Be concise and friendly. Amounts are in Indian Rupees (₹).
If you don't know the answer or the data is insufficient, say so.
Do not make up information. Base your answers ONLY on the JSON data below.

Today's date is {today.isoformat()}.

User Question: {question.strip()}

Receipt Data:
{_receipts_as_json(receipts)}"""

        try:
            answer = await self._generate(prompt)
        except Exception as e:
            logger.warning("answer_failed", error=str(e))
            return APOLOGY_MESSAGE

        return answer or APOLOGY_MESSAGE

    async def generate_tips(self, receipts: list[Receipt]) -> list[FinancialTip]:
        """
        Generate 2-3 tips: cheaper alternatives, reorder reminders, savings.

        Returns [] when there is nothing to analyse or the model fails.
        """
        if not receipts:
            return []

        prompt = f"""You are a helpful personal finance assistant.
Analyze the receipt data and generate 2-3 concise, actionable financial tips covering:
1. alternative: cheaper brands or generic alternatives for brand-name items
2. reorder: items bought regularly that deserve a reorder reminder
3. savings_tip: a savings tip based on the spending categories

Receipt Data:
{_receipts_as_json(receipts)}

Respond with ONLY a JSON object in this exact format:
{{"recommendations": [{{"type": "savings_tip", "title": "Short title", "description": "One or two sentences."}}]}}"""

        try:
            data = _find_json(await self._generate(prompt))
        except Exception as e:
            logger.warning("tips_failed", error=str(e))
            return []

        if data is None:
            return []

        tips = []
        for entry in data.get("recommendations") or []:
            try:
                tips.append(FinancialTip.model_validate(entry))
            except ValidationError:
                logger.debug("tip_discarded", entry=entry)
        return tips
