"""
Gemini REST client for one-shot structured generation.
"""
import json
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import GENAI_API_BASE, VERTEX_LOCATION, TEXT_MODEL, LLM_TIMEOUT, MAX_OUTPUT_TOKENS

logger = logging.getLogger("llm_client")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def fetch_access_token(credentials_json: Optional[str] = None) -> str:
    """OAuth access token from a service account file or application default credentials."""
    if credentials_json:
        creds = service_account.Credentials.from_service_account_file(
            credentials_json,
            scopes=[CLOUD_PLATFORM_SCOPE],
        )
    else:
        creds, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])

    creds.refresh(google.auth.transport.requests.Request())
    return creds.token


class GeminiRestClient:
    """
    REST client for Gemini ``generateContent``.

    With ``api_key`` it talks to the Generative Language API; otherwise it
    uses Vertex AI for ``project`` with an OAuth bearer token.
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 project: Optional[str] = None,
                 location: str = VERTEX_LOCATION,
                 model: str = TEXT_MODEL,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        if not api_key and not project:
            raise ValueError("Either api_key or project is required")
        self.api_key = api_key
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.timeout = timeout
        self._token = None

    def _model_url(self, model: str) -> str:
        if self.api_key:
            return f"{GENAI_API_BASE}/models/{model}:generateContent"
        return (f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project}"
                f"/locations/{self.location}/publishers/google/models/{model}:generateContent")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-goog-api-key"] = self.api_key
        else:
            if not self._token:
                self._token = fetch_access_token(self.credentials_json)
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def generate_content(
        self,
        parts: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        response_mime_type: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        model: Optional[str] = None,
    ) -> str:
        """Generate content and return the first text part of the first candidate."""
        url = self._model_url(model or self.model)

        generation_config: Dict[str, Any] = {"maxOutputTokens": int(max_output_tokens)}
        if temperature is not None:
            generation_config["temperature"] = float(temperature)
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type
        if response_schema is not None:
            generation_config["responseSchema"] = response_schema

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        resp = requests.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        if resp.status_code == 401 and not self.api_key:
            # Cached token expired; refresh once
            self._token = None
            resp = requests.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        if resp.status_code >= 400:
            raise RuntimeError(f"Gemini REST error {resp.status_code}: {resp.text}")

        return self._parse_response_text(resp.json())

    def _parse_response_text(self, resp_json: Dict[str, Any]) -> str:
        """Extract candidates[0].content.parts[*].text, falling back to the raw JSON."""
        cands = resp_json.get("candidates") or []
        if cands:
            content = cands[0].get("content") or {}
            for part in content.get("parts") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    return part["text"]
        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]

        logger.warning("No text part in Gemini response")
        return json.dumps(resp_json, separators=(",", ":"))

    def generate_json(self,
                      prompt: str,
                      response_schema: Optional[Dict[str, Any]] = None,
                      system_instruction: Optional[str] = None,
                      images: Optional[List[str]] = None,
                      model: Optional[str] = None) -> Any:
        """
        Generate a JSON response constrained by ``response_schema``.

        Args:
            prompt: User prompt text
            response_schema: OpenAPI-style schema the model must follow
            system_instruction: Optional system prompt
            images: Base64 JPEG images attached as inline data
            model: Override the client's default model

        Raises:
            RuntimeError: On HTTP errors
            ValueError: If the model did not return parsable JSON
        """
        parts: List[Dict[str, Any]] = [{"text": prompt.strip()}]
        for image in images or []:
            parts.append({"inlineData": {"mimeType": "image/jpeg", "data": image}})

        logger.debug("Sending JSON prompt to Gemini...")
        text = self.generate_content(
            parts,
            system_instruction=system_instruction,
            response_schema=response_schema,
            response_mime_type="application/json",
            model=model,
        )
        logger.debug("Raw LLM output: %s", repr(text))
        return parse_json_text(text)

    def generate_text(self, prompt: str, system_instruction: Optional[str] = None,
                      model: Optional[str] = None) -> str:
        return self.generate_content([{"text": prompt.strip()}],
                                     system_instruction=system_instruction,
                                     model=model).strip()


def parse_json_text(text: str) -> Any:
    """Parse JSON, retrying on the outermost object or array embedded in the text."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("json.loads failed: %s", e)

    # Try whichever bracket opens first so arrays of objects stay intact
    candidates = sorted((text.find(o), o, c) for o, c in (("{", "}"), ("[", "]")) if o in text)
    for start, _, closer in candidates:
        end = text.rfind(closer)
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError as e2:
                logger.warning("Substring parse also failed: %s", e2)

    raise ValueError(f"LLM did not return valid JSON: {text}")
