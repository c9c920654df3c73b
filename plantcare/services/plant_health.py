import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from flask import current_app

from ..errors import UpstreamError, UpstreamTimeout

BASE_PROMPT = """Analyze the health of the plant or flower shown in this image. Focus specifically on visible signs related to its well-being.
1.  **Overall Assessment:** Briefly describe the overall apparent health (e.g., healthy, stressed, showing issues).
2.  **Potential Issues:** Identify any specific potential problems visible in the image (e.g., for plants: yellowing leaves, drooping, spots, pests, signs of under/over-watering; for flowers: wilting, discoloration, pests, spots). Be specific if possible.
3.  **Care Suggestions:** Based ONLY on the visual evidence in the image, provide 1-3 concise, actionable care suggestions. Prioritize the most likely needed actions.

Format the output clearly using markdown headings for each section (Overall Assessment, Potential Issues, Care Suggestions). If no specific issues are visible, state that the plant or flower appears healthy."""

GENERATION_CONFIG = {
    "temperature": 0.4,
    "top_k": 32,
    "top_p": 1,
    "max_output_tokens": 8192,
}

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


def build_prompt(language="English"):
    return f"{BASE_PROMPT}\n\nPlease provide the response in {language}."


def get_model():
    genai.configure(api_key=current_app.config["GEMINI_API_KEY"])
    return genai.GenerativeModel(current_app.config["GEMINI_MODEL"])


def analyze(image_bytes, mime_type, language="English"):
    """Send an image to Gemini and return its markdown health analysis."""
    model = get_model()
    timeout = current_app.config["AI_TIMEOUT_SECONDS"]
    parts = [build_prompt(language), {"mime_type": mime_type, "data": image_bytes}]

    current_app.logger.info("Sending request to Gemini model (%s) in %s...",
                            current_app.config["GEMINI_MODEL"], language)
    try:
        response = model.generate_content(
            parts,
            generation_config=GENERATION_CONFIG,
            safety_settings=SAFETY_SETTINGS,
            request_options={"timeout": timeout},
        )
        text = response.text
    except (google_exceptions.DeadlineExceeded, TimeoutError) as e:
        current_app.logger.error("Gemini request timed out after %ss: %s", timeout, e)
        raise UpstreamTimeout("AI analysis timed out", details=f"No response within {timeout:g} seconds")
    except Exception as e:
        current_app.logger.exception("Error calling Gemini API")
        raise UpstreamError("Failed to analyze plant image.", details=str(e))
    current_app.logger.info("Received response from Gemini.")
    return text
