"""
Client for the Gemini generateContent endpoint.

The provider is a black box: prompt text plus inline media in, free text out.
"""
import base64
import logging

import requests
from django.conf import settings

from .exceptions import RemoteProviderError

logger = logging.getLogger(__name__)


class GeminiClient:
    def __init__(self, api_key=None, model=None, api_base=None, timeout=None, session=None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.api_base = (api_base or settings.GEMINI_API_BASE).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.GEMINI_TIMEOUT
        self.session = session or requests.Session()

    @property
    def url(self):
        return f"{self.api_base}/models/{self.model}:generateContent"

    def generate(self, prompt, mime_type, data):
        """Send ``prompt`` with the media bytes and return the answer text."""
        if not self.api_key:
            raise RemoteProviderError('GEMINI_API_KEY not configured')

        payload = {
            'contents': [{
                'parts': [
                    {'text': prompt},
                    {'inline_data': {
                        'mime_type': mime_type,
                        'data': base64.b64encode(data).decode('ascii'),
                    }},
                ]
            }]
        }
        logger.info("Calling %s (%s, %d bytes)", self.model, mime_type, len(data))
        try:
            response = self.session.post(
                self.url, params={'key': self.api_key}, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteProviderError(f'Model request failed: {e}') from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            error = body.get('error') if isinstance(body, dict) else None
            message = error.get('message') if isinstance(error, dict) else error
            raise RemoteProviderError(
                message or f'Gemini API error: {response.status_code} {response.reason}',
                status_code=response.status_code)

        if not isinstance(body, dict):
            raise RemoteProviderError('Model returned malformed JSON')

        try:
            text = body['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            raise RemoteProviderError('Model response has no text') from None
        if not isinstance(text, str):
            raise RemoteProviderError('Model response has no text')
        logger.debug("Model answer: %s", text)
        return text
