# reviewiq/modules/reviews/services/prompt_templates.py

from typing import Any, Dict

REVIEW_ANALYSIS_SYSTEM_PROMPT = (
    "You are a review analysis engine. Respond ONLY in valid JSON."
)


def review_analysis_prompt(review_text: str, temperature: float = 0.2) -> Dict[str, Any]:
    """Chat messages asking for sentiment and category of one review"""
    return {
        "messages": [
            {"role": "system", "content": REVIEW_ANALYSIS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    "Analyze the following customer review text.\n\n"
                    "Return:\n"
                    "{\n"
                    '"sentiment": "positive | neutral | negative",\n'
                    '"sentimentConfidence": number,\n'
                    '"category": "food | service | staff | cleanliness | ambience | other",\n'
                    '"categoryConfidence": number\n'
                    "}\n\n"
                    f'Review Text:\n"{review_text}"'
                ),
            },
        ],
        "temperature": temperature,
    }
