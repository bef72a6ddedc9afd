from __future__ import annotations

import os

from openai import OpenAI

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_TOKENS = 2048


def get_openai_client() -> OpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    timeout = float(os.getenv("CHORUS_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


def complete_prompt(prompt: str, model: str | None = None) -> str:
    client = get_openai_client()
    response = client.chat.completions.create(
        model=model or os.getenv("CHORUS_OPENAI_MODEL", DEFAULT_MODEL),
        max_tokens=MAX_TOKENS,
        messages=[{"role": "user", "content": prompt}],
    )
    return response.choices[0].message.content or ""
