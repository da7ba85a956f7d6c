# --- core/llm_utils.py ---
import json
import logging
import time

import requests

log_llm = logging.getLogger("cpdf.llm")

MAX_RETRIES = 3
RETRY_DELAY_S = 2


def _format_text_for_log(text: str) -> str:
    """Formats a long text block into a concise, single-line summary for logging."""
    single_line_text = str(text).replace("\n", " ").strip()
    if len(single_line_text) > 240:
        return f'"{single_line_text[:115]}...{single_line_text[-115:]}"'
    return f'"{single_line_text}"'


def get_model_details(ollama_url: str, model: str) -> dict:
    """Queries the Ollama /api/show endpoint for model details."""
    log_llm.info("Querying details for model: %s...", model)
    try:
        response = requests.post(f"{ollama_url}/api/show", json={"name": model}, timeout=10)
        if response.status_code == 404:
            log_llm.error("Model '%s' not found.", model)
            return {}
        response.raise_for_status()
        model_info = response.json()
        details = model_info.get("details", {})
        context_length = 0
        for line in model_info.get("modelfile", "").split("\n"):
            if "num_ctx" in line.lower():
                try:
                    context_length = int(line.split()[1])
                    break
                except (ValueError, IndexError):
                    continue

        result = {
            "family": details.get("family", "N/A"),
            "parameter_size": details.get("parameter_size", "N/A"),
            "quantization_level": details.get("quantization_level", "N/A"),
            "context_length": context_length,
        }
        log_llm.info("Model details retrieved: %s", result)
        return result
    except requests.exceptions.RequestException as e:
        log_llm.error("Could not connect to Ollama at %s: %s", ollama_url, e)
        return {}


def query_text_llm(
    prompt: str,
    user_content: str,
    ollama_url: str,
    model: str,
    stream: bool = False,
    temperature: float = None,
    context_window: int = None,
):
    """
    Sends a text prompt to an Ollama model with a retry mechanism.
    In streaming mode a generator of decoded JSON chunks is returned; after all
    retries fail, the result (or the single streamed chunk) carries an 'error'.
    """
    last_exception = None

    log_llm.debug(
        "Querying LLM:\n  - Model: %s (Stream: %s)\n  - System: %s\n  - User: %s",
        model,
        stream,
        _format_text_for_log(prompt),
        _format_text_for_log(user_content),
    )
    start_time = time.monotonic()

    payload = {
        "model": model,
        "system": prompt,
        "prompt": user_content,
        "stream": stream,
    }
    options = {}
    if temperature is not None:
        options["temperature"] = temperature
    if context_window is not None:
        options["num_ctx"] = context_window
    if options:
        payload["options"] = options

    def _stream_generator(response):
        """Inner generator to handle the streaming response."""
        for line in response.iter_lines():
            if line:
                try:
                    yield json.loads(line.decode("utf-8"))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    log_llm.warning("Failed to decode stream chunk: %s", line)
                    continue
        duration = time.monotonic() - start_time
        log_llm.debug("LLM stream finished for model '%s' in %.2f seconds.", model, duration)

    for attempt in range(MAX_RETRIES):
        try:
            response = requests.post(
                f"{ollama_url}/api/generate", json=payload, stream=stream, timeout=60
            )
            response.raise_for_status()

            if stream:
                return _stream_generator(response)
            data = response.json()
            eval_sec = data.get("eval_duration", 0) / 1_000_000_000
            eval_count = data.get("eval_count", 0)
            tps = (eval_count / eval_sec) if eval_sec > 0 else 0
            log_llm.debug(
                "LLM Query OK: model=%s duration=%.2fs prompt_tk=%d response_tk=%d "
                "tps=%.1f response=%s",
                model,
                data.get("total_duration", 0) / 1_000_000_000,
                data.get("prompt_eval_count", 0),
                eval_count,
                tps,
                _format_text_for_log(data.get("response", "").strip()),
            )
            return data

        except requests.exceptions.RequestException as e:
            last_exception = e
            log_llm.warning(
                "LLM query failed on attempt %d/%d: %s", attempt + 1, MAX_RETRIES, e
            )
            if attempt < MAX_RETRIES - 1:
                time.sleep(RETRY_DELAY_S)
            else:
                log_llm.error("Failed to query text LLM after %d retries.", MAX_RETRIES)

    if stream:
        return (chunk for chunk in [{"error": str(last_exception)}])
    return {"error": str(last_exception)}
