"""
Price negotiation chatbot backed by Google Gemini.

Stateless: the client resends the car context and the latest message every
turn. Any provider failure becomes one generic apology (HTTP 502); there is
no retry.
"""

import json
import logging

import httpx
from flask import current_app

from errors import UpstreamError
from schemas import NegotiationOut

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
APOLOGY = "Sorry, I'm having trouble negotiating right now. Please try again in a moment."


def build_prompt(data):
    lines = [
        "You are a car rental price negotiation chatbot. Your goal is to negotiate the hourly rental price with the user.",
        "",
        f"Car Model: {data.car_model}",
        f"Rental Hours: {data.rental_hours:g}",
        f"Initial Hourly Price: {data.initial_price:g}",
    ]
    if data.min_negotiable_price is not None:
        lines.append(f"Minimum Acceptable Hourly Price: {data.min_negotiable_price:g}")
    if data.max_negotiable_price is not None:
        lines.append(f"Maximum Asking Hourly Price: {data.max_negotiable_price:g} (This is usually the initial price)")
    lines += [
        "",
        f"User Input: {data.user_input}",
        "",
        "Your primary goal is to reach a deal.",
        "If minimum and maximum prices are provided, keep your offers within this range.",
        "If the user proposes a price below the minimum, politely say it is too low and suggest a price closer to the minimum.",
        "Always state a negotiated hourly price as a number.",
        "If you have reached the minimum or a price you won't go below, set isFinalOffer to true.",
        "Be friendly and professional.",
        "",
        'Respond with JSON only: {"response": string, "negotiatedPrice": number, "isFinalOffer": boolean}',
    ]
    return "\n".join(lines)


def _extract_text(payload):
    candidates = payload.get("candidates") or []
    if not candidates:
        raise ValueError("Gemini returned no candidates")
    parts = candidates[0].get("content", {}).get("parts") or [{}]
    text = (parts[0].get("text") or "").strip()
    if not text:
        raise ValueError("Gemini returned an empty answer")
    return text


def negotiate(data):
    api_key = current_app.config.get('GEMINI_API_KEY')
    if not api_key:
        logger.error("GEMINI_API_KEY is not configured; negotiation unavailable")
        raise UpstreamError(APOLOGY)

    url = GEMINI_API_URL.format(model=current_app.config['GEMINI_MODEL'])
    body = {
        "contents": [{"parts": [{"text": build_prompt(data)}]}],
        "generationConfig": {
            "temperature": 0.4,
            "responseMimeType": "application/json",
        },
    }

    try:
        with httpx.Client(timeout=current_app.config['GEMINI_TIMEOUT_SECONDS']) as client:
            resp = client.post(url, params={"key": api_key}, json=body)
        resp.raise_for_status()
        answer = NegotiationOut.model_validate(json.loads(_extract_text(resp.json())))
    except httpx.TimeoutException:
        logger.warning("Gemini API timeout")
        raise UpstreamError(APOLOGY)
    except httpx.HTTPError as e:
        logger.error("Gemini API request failed: %s", e)
        raise UpstreamError(APOLOGY)
    except (ValueError, AttributeError) as e:
        logger.error("Unusable Gemini answer: %s", e)
        raise UpstreamError(APOLOGY)

    logger.info("Negotiation for %s: offered %.2f (final=%s)",
                data.car_model, answer.negotiated_price, answer.is_final_offer)
    return answer
