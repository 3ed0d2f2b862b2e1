"""
Tests for the Gemini-backed agents.

The model is always a mock: no network calls. Retries use wait_none()
so failure paths run instantly.
"""

import asyncio
import json
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from tenacity import wait_none

from receiptwise.agents import (
    APOLOGY_MESSAGE,
    ExtractionFailedError,
    InsightsAgent,
    ModelUnavailableError,
    ReceiptExtractionAgent,
)
from receiptwise.models.receipt import (
    ExtractedReceiptData,
    Receipt,
    ReceiptSource,
)


TODAY = date(2024, 8, 20)


def _model(*texts):
    """A mock model returning the given response texts in order."""
    model = MagicMock()
    model.generate_content_async = AsyncMock(
        side_effect=[MagicMock(text=t) for t in texts]
    )
    return model


def _failing_model(error=RuntimeError("quota exceeded")):
    model = MagicMock()
    model.generate_content_async = AsyncMock(side_effect=error)
    return model


def _extraction_agent(model, attempts=3):
    return ReceiptExtractionAgent(model, max_attempts=attempts, wait=wait_none())


def _insights_agent(model, attempts=3):
    return InsightsAgent(model, max_attempts=attempts, wait=wait_none())


class TestImageExtraction:

    def test_extracts_fields(self):
        payload = {
            "date": "2024-07-15",
            "vendor": "Big Bazaar",
            "totalAmount": 1250.5,
            "itemizedList": [
                {"item": "Rice", "price": 800},
                {"item": "Dal", "price": "450.50"},
            ],
        }
        agent = _extraction_agent(_model(f"Here you go:\n```json\n{json.dumps(payload)}\n```"))
        extracted = asyncio.run(agent.extract_from_image(MagicMock()))

        assert extracted.vendor == "Big Bazaar"
        assert extracted.purchase_date == date(2024, 7, 15)
        assert extracted.total_amount == Decimal("1250.5")
        assert [i.name for i in extracted.line_items] == ["Rice", "Dal"]
        assert extracted.line_items[1].price == Decimal("450.50")
        assert extracted.source == ReceiptSource.IMAGE

    def test_image_is_sent_with_prompt(self):
        model = _model('{"vendor": "Cafe X", "totalAmount": 90}')
        image = MagicMock()
        asyncio.run(_extraction_agent(model).extract_from_image(image))
        contents = model.generate_content_async.call_args[0][0]
        assert contents[1] is image

    def test_bad_items_are_skipped(self):
        payload = {
            "vendor": "Store",
            "totalAmount": 100,
            "itemizedList": [
                {"item": "Good", "price": 100},
                {"item": "", "price": 5},
                {"item": "Negative", "price": -3},
                "not an item",
            ],
        }
        agent = _extraction_agent(_model(json.dumps(payload)))
        extracted = asyncio.run(agent.extract_from_image(MagicMock()))
        assert [i.name for i in extracted.line_items] == ["Good"]

    def test_model_failure_raises_extraction_failed(self):
        model = _failing_model()
        agent = _extraction_agent(model, attempts=2)
        with pytest.raises(ModelUnavailableError, match="Failed to process receipt"):
            asyncio.run(agent.extract_from_image(MagicMock()))
        assert model.generate_content_async.await_count == 2

    def test_retry_recovers(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=[
            RuntimeError("temporary"),
            MagicMock(text='{"vendor": "Cafe X", "totalAmount": 90}'),
        ])
        extracted = asyncio.run(_extraction_agent(model).extract_from_image(MagicMock()))
        assert extracted.vendor == "Cafe X"

    def test_no_json_raises(self):
        agent = _extraction_agent(_model("I cannot read this receipt."))
        with pytest.raises(ExtractionFailedError):
            asyncio.run(agent.extract_from_image(MagicMock()))

    def test_empty_payload_raises(self):
        agent = _extraction_agent(_model('{"vendor": "", "totalAmount": null}'))
        with pytest.raises(ExtractionFailedError):
            asyncio.run(agent.extract_from_image(MagicMock()))


class TestTextParsing:

    def test_total_only_text_gets_single_item(self):
        agent = _extraction_agent(_model(
            '{"date": "2024-07-15", "vendor": "Zomato", "totalAmount": 450}'
        ))
        extracted = asyncio.run(agent.parse_text(
            "Your order with Zomato for Rs. 450 is confirmed on 15 July.", TODAY
        ))
        assert extracted.source == ReceiptSource.TEXT
        assert len(extracted.line_items) == 1
        assert extracted.line_items[0].name == "Total Purchase"
        assert extracted.line_items[0].price == Decimal("450")
        assert extracted.raw_text.startswith("Your order with Zomato")

    def test_month_day_date_uses_current_year(self):
        agent = _extraction_agent(_model(
            '{"date": "07-15", "vendor": "Swiggy", "totalAmount": 300}'
        ))
        extracted = asyncio.run(agent.parse_text("Swiggy Rs 300 on 15/07", TODAY))
        assert extracted.purchase_date == date(2024, 7, 15)

    def test_invalid_month_day_becomes_unknown(self):
        agent = _extraction_agent(_model(
            '{"date": "13-45", "vendor": "Swiggy", "totalAmount": 300}'
        ))
        extracted = asyncio.run(agent.parse_text("Swiggy Rs 300", TODAY))
        assert extracted.purchase_date is None

    def test_prompt_mentions_current_year(self):
        model = _model('{"vendor": "Swiggy", "totalAmount": 300}')
        asyncio.run(_extraction_agent(model).parse_text("Swiggy Rs 300", TODAY))
        prompt = model.generate_content_async.call_args[0][0]
        assert "2024" in prompt
        assert "Swiggy Rs 300" in prompt

    def test_empty_text_raises_without_calling_model(self):
        model = _model()
        with pytest.raises(ExtractionFailedError):
            asyncio.run(_extraction_agent(model).parse_text("   ", TODAY))
        model.generate_content_async.assert_not_awaited()


class TestCategorize:

    def test_known_category(self):
        agent = _extraction_agent(_model(
            '{"category": "dining", "confidence": 0.9, "reasoning": "Restaurant"}'
        ))
        suggestion = asyncio.run(agent.categorize(ExtractedReceiptData(vendor="Zomato")))
        assert suggestion.category == "Dining"
        assert suggestion.confidence == pytest.approx(0.9)

    def test_unknown_category_becomes_other(self):
        agent = _extraction_agent(_model('{"category": "Pets", "confidence": 0.7}'))
        suggestion = asyncio.run(agent.categorize(ExtractedReceiptData(vendor="Pet Shop")))
        assert suggestion.category == "Other"

    def test_confidence_is_clamped(self):
        agent = _extraction_agent(_model('{"category": "Travel", "confidence": 7}'))
        suggestion = asyncio.run(agent.categorize(ExtractedReceiptData(vendor="Uber")))
        assert suggestion.confidence == 1.0

    def test_failure_falls_back_to_other(self):
        agent = _extraction_agent(_failing_model(), attempts=1)
        suggestion = asyncio.run(agent.categorize(ExtractedReceiptData(vendor="Uber")))
        assert suggestion.category == "Other"
        assert suggestion.confidence == pytest.approx(0.3)


class TestDetectFraud:

    def test_flagged_with_details(self):
        agent = _extraction_agent(_model(
            '{"isFraudulent": true, "fraudulentDetails": "Items do not add up"}'
        ))
        assessment = asyncio.run(agent.detect_fraud(ExtractedReceiptData(vendor="X")))
        assert assessment.is_fraudulent is True
        assert assessment.fraudulent_details == "Items do not add up"

    def test_flag_without_details_gets_a_reason(self):
        agent = _extraction_agent(_model('{"isFraudulent": true}'))
        assessment = asyncio.run(agent.detect_fraud(ExtractedReceiptData(vendor="X")))
        assert assessment.is_fraudulent is True
        assert assessment.fraudulent_details

    def test_clean_receipt_has_no_details(self):
        agent = _extraction_agent(_model(
            '{"isFraudulent": false, "fraudulentDetails": "Looks fine"}'
        ))
        assessment = asyncio.run(agent.detect_fraud(ExtractedReceiptData(vendor="X")))
        assert assessment.is_fraudulent is False
        assert assessment.fraudulent_details == ""

    def test_failure_is_not_fraud(self):
        agent = _extraction_agent(_failing_model(), attempts=1)
        assessment = asyncio.run(agent.detect_fraud(ExtractedReceiptData(vendor="X")))
        assert assessment.is_fraudulent is False


class TestInsightsAgent:

    def _receipts(self):
        return [
            Receipt(
                vendor="Zomato",
                total_amount=Decimal("450"),
                purchase_date=date(2024, 8, 1),
                category="Dining",
            ),
        ]

    def test_answer(self):
        model = _model("You spent ₹450 on dining.")
        agent = _insights_agent(model)
        answer = asyncio.run(agent.answer_question(
            "How much did I spend on dining?", self._receipts(), TODAY
        ))
        assert answer == "You spent ₹450 on dining."
        prompt = model.generate_content_async.call_args[0][0]
        assert "Zomato" in prompt
        assert "2024-08-20" in prompt

    def test_answer_failure_is_apology(self):
        agent = _insights_agent(_failing_model(), attempts=2)
        answer = asyncio.run(agent.answer_question("Anything?", self._receipts(), TODAY))
        assert answer == APOLOGY_MESSAGE

    def test_empty_answer_is_apology(self):
        agent = _insights_agent(_model("   "))
        answer = asyncio.run(agent.answer_question("Anything?", [], TODAY))
        assert answer == APOLOGY_MESSAGE

    def test_blank_question_is_apology(self):
        model = _model()
        answer = asyncio.run(_insights_agent(model).answer_question("", [], TODAY))
        assert answer == APOLOGY_MESSAGE
        model.generate_content_async.assert_not_awaited()

    def test_tips(self):
        payload = {
            "recommendations": [
                {"type": "savings_tip", "title": "Cook more", "description": "Dining adds up."},
                {"type": "alternative", "title": "Generic rice", "description": "Try a store brand."},
                {"type": "horoscope", "title": "Bad", "description": "Not a real tip type."},
            ]
        }
        tips = asyncio.run(_insights_agent(_model(json.dumps(payload))).generate_tips(self._receipts()))
        assert [t.type for t in tips] == ["savings_tip", "alternative"]

    def test_no_receipts_no_tips(self):
        model = _model()
        assert asyncio.run(_insights_agent(model).generate_tips([])) == []
        model.generate_content_async.assert_not_awaited()

    def test_tips_failure_is_empty(self):
        tips = asyncio.run(_insights_agent(_failing_model(), attempts=1).generate_tips(self._receipts()))
        assert tips == []

    def test_unparseable_tips_are_empty(self):
        tips = asyncio.run(_insights_agent(_model("No tips today")).generate_tips(self._receipts()))
        assert tips == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
