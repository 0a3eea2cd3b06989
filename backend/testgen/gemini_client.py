from __future__ import annotations
import httpx
from typing import Any, Dict, Optional
from .errors import ModelInvocationError
from .settings import settings

class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		provider: Optional[str] = None,
		timeout: Optional[float] = None,
		region: Optional[str] = None,
		project: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = provider or settings.gemini_provider
		if self.provider == "vertex":
			region = region or settings.vertex_region
			project = project or settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=timeout or settings.gemini_timeout_seconds, transport=transport)

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			raise ModelInvocationError(
				_error_message(http_err.response),
				status_code=http_err.response.status_code,
			) from http_err
		except httpx.RequestError as net_err:
			raise ModelInvocationError(f"Gemini request failed: {net_err}") from net_err
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except Exception as err:
			raise ModelInvocationError(f"Unexpected Gemini response: {r.text}") from err

	async def aclose(self) -> None:
		await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
	# Gemini error bodies look like {"error": {"code": 503, "message": "...", "status": "UNAVAILABLE"}}
	try:
		err = response.json().get("error") or {}
		message = err.get("message")
		if message:
			return str(message)
	except Exception:
		pass
	return response.text or response.reason_phrase
