"""CLI interface for deepseekkit using Click."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from deepseekkit.core.client import DeepSeekClient
from deepseekkit.core.config import get_project_root, load_settings
from deepseekkit.core.errors import DeepSeekError
from deepseekkit.llm.tools import FunctionBuilder, Tool
from deepseekkit.llm.types import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionRequest,
    DeepSeekModel,
    ResponseFormat,
    StreamOptions,
    Usage,
)
from deepseekkit.streaming.accumulator import ChunkAccumulator

MODEL_CHOICES = {"chat": DeepSeekModel.CHAT, "reasoner": DeepSeekModel.REASONER}


def _load_env():
    """Load .env file if it exists."""
    load_dotenv(get_project_root() / ".env")


class AppContext:
    """Holds the settings and global options shared by every command."""

    def __init__(
        self,
        api_key: str | None = None,
        transport: str | None = None,
        config_path: Path | None = None,
    ):
        _load_env()
        self.settings = load_settings(config_path)
        if transport:
            self.settings.streaming = self.settings.streaming.model_copy(update={"transport": transport})
        self.api_key = api_key or self.settings.api_key

    def client(self) -> DeepSeekClient:
        if not self.api_key:
            click.echo("Error: DEEPSEEK_API_KEY not set. Add it to .env, the environment, or pass --api-key.", err=True)
            sys.exit(1)
        return DeepSeekClient(api_key=self.api_key, settings=self.settings)

    def model(self, choice: str | None) -> str:
        """Resolve a ``--model`` alias, falling back to ``default_model`` from settings."""
        if choice is None:
            return self.settings.default_model
        return MODEL_CHOICES[choice].value


def _messages(message: str, system: str | None) -> list[ChatMessage]:
    messages = []
    if system:
        messages.append(ChatMessage.system(system))
    messages.append(ChatMessage.user(message))
    return messages


def _echo_usage(usage: Usage | None):
    if usage is None:
        return
    click.echo("\nUsage:")
    click.echo(f"  Prompt tokens: {usage.prompt_tokens}")
    click.echo(f"  Completion tokens: {usage.completion_tokens}")
    click.echo(f"  Total tokens: {usage.total_tokens}")
    if usage.prompt_cache_hit_tokens is not None:
        click.echo(f"  Cache hit tokens: {usage.prompt_cache_hit_tokens}")
    if usage.prompt_cache_miss_tokens is not None:
        click.echo(f"  Cache miss tokens: {usage.prompt_cache_miss_tokens}")


def _echo_reasoning(reasoning: str | None):
    if not reasoning:
        return
    click.echo("\n--- Reasoning Process ---")
    click.echo(reasoning)
    click.echo("--- End Reasoning ---\n")


def _run(coro):
    try:
        return asyncio.run(coro)
    except DeepSeekError as e:
        click.echo(f"\nError: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="deepseek")
@click.option("--api-key", envvar="DEEPSEEK_API_KEY", default=None, help="DeepSeek API key")
@click.option(
    "--transport",
    type=click.Choice(["auto", "httpx", "curl"]),
    default=None,
    help="Streaming transport (overrides settings)",
)
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None, help="YAML settings file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, api_key: str | None, transport: str | None, config_path: Path | None, verbose: bool):
    """deepseek - command line client for the DeepSeek API"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    ctx.obj = AppContext(api_key=api_key, transport=transport, config_path=config_path)


@cli.command()
@click.argument("message")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--model", "-m", type=click.Choice(list(MODEL_CHOICES)), default=None, help="Model to use")
@click.option("--temperature", "-t", type=float, default=None, help="Temperature (0-2)")
@click.option("--top-p", type=float, default=None, help="Top-p value (0-1)")
@click.option("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
@click.option("--show-usage", is_flag=True, help="Show usage statistics")
@click.pass_obj
def chat(
    app: AppContext,
    message: str,
    system: str | None,
    model: str | None,
    temperature: float | None,
    top_p: float | None,
    max_tokens: int | None,
    show_usage: bool,
):
    """Send a chat completion request."""
    request = ChatCompletionRequest(
        model=app.model(model),
        messages=_messages(message, system),
        temperature=temperature,
        top_p=top_p,
        max_tokens=max_tokens,
    )
    _run(_chat(app, request, show_usage))


async def _chat(app: AppContext, request: ChatCompletionRequest, show_usage: bool):
    async with app.client() as client:
        response = await client.chat.create_completion(request)
    if not response.choices:
        return
    message = response.choices[0].message
    if message.content:
        click.echo(message.content)
    _echo_reasoning(message.reasoning_content)
    if show_usage:
        _echo_usage(response.usage)


@cli.command()
@click.argument("message")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--model", "-m", type=click.Choice(list(MODEL_CHOICES)), default=None, help="Model to use")
@click.option("--temperature", "-t", type=float, default=None, help="Temperature (0-2)")
@click.option("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
@click.option("--show-reasoning", is_flag=True, help="Show reasoning content separately")
@click.pass_obj
def stream(
    app: AppContext,
    message: str,
    system: str | None,
    model: str | None,
    temperature: float | None,
    max_tokens: int | None,
    show_reasoning: bool,
):
    """Stream a chat completion response."""
    request = ChatCompletionRequest(
        model=app.model(model),
        messages=_messages(message, system),
        temperature=temperature,
        max_tokens=max_tokens,
        stream_options=StreamOptions(include_usage=True),
    )
    _run(_stream(app, request, show_reasoning))


async def _stream(app: AppContext, request: ChatCompletionRequest, show_reasoning: bool):
    accumulator = ChunkAccumulator()
    async with app.client() as client:
        async with client.chat.create_streaming_completion(request) as chunks:
            async for chunk in chunks:
                accumulator.add(chunk)
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    click.echo(delta.content, nl=False)
                if show_reasoning and delta.reasoning_content:
                    click.echo(f"[R: {delta.reasoning_content}]", nl=False)
            if chunks.dropped_chunks:
                click.echo(f"\n({chunks.dropped_chunks} malformed chunk(s) skipped)", err=True)
    click.echo()
    if show_reasoning:
        _echo_reasoning(accumulator.reasoning_content)
    _echo_usage(accumulator.usage)


@cli.command()
@click.argument("prompt")
@click.option("--suffix", "-s", default=None, help="Text after the completion")
@click.option("--temperature", "-t", type=float, default=None, help="Temperature (0-2)")
@click.option("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
@click.option("--show-usage", is_flag=True, help="Show usage statistics")
@click.pass_obj
def complete(
    app: AppContext,
    prompt: str,
    suffix: str | None,
    temperature: float | None,
    max_tokens: int | None,
    show_usage: bool,
):
    """Fill-in-the-middle completion (beta)."""
    request = CompletionRequest(
        prompt=prompt,
        suffix=suffix,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    _run(_complete(app, request, show_usage))


async def _complete(app: AppContext, request: CompletionRequest, show_usage: bool):
    async with app.client() as client:
        response = await client.chat.create_fim_completion(request)
    if response.choices:
        click.echo(response.choices[0].text)
    if show_usage:
        _echo_usage(response.usage)


@cli.command("models")
@click.pass_obj
def list_models(app: AppContext):
    """List available models."""
    _run(_list_models(app))


async def _list_models(app: AppContext):
    async with app.client() as client:
        models = await client.models.list_models()
    if not models:
        click.echo("No models found.")
        return

    click.echo(f"{'ID':<30} {'Owned by'}")
    click.echo("-" * 50)
    for model in models:
        click.echo(f"{model.id:<30} {model.owned_by}")


@cli.command()
@click.pass_obj
def balance(app: AppContext):
    """Show the account balance."""
    _run(_balance(app))


async def _balance(app: AppContext):
    async with app.client() as client:
        response = await client.balance.get_balance()
    click.echo(f"Available: {'yes' if response.is_available else 'no'}")
    for info in response.balances:
        click.echo(
            f"{info.currency}: total {info.total_balance} "
            f"(granted {info.granted_balance}, topped up {info.topped_up_balance})"
        )


# Canned results for the demo functions offered by ``function-call``.
SIMULATED_RESULTS = {
    "get_weather": {"temperature": 72, "condition": "sunny", "humidity": 45},
    "calculate": {"result": 42},
    "search_web": {"results": [{"title": "Example Result", "url": "https://example.com"}]},
}


def _demo_tools() -> list[Tool]:
    return [
        FunctionBuilder("get_weather", "Get the current weather in a given location")
        .add_string_parameter("location", "The city and state, e.g. San Francisco, CA", required=True)
        .add_string_parameter("unit", "Temperature unit", enum=["celsius", "fahrenheit"])
        .build_tool(),
        FunctionBuilder("calculate", "Perform mathematical calculations")
        .add_string_parameter("expression", "The mathematical expression to evaluate", required=True)
        .build_tool(),
        FunctionBuilder("search_web", "Search the web for information")
        .add_string_parameter("query", "The search query", required=True)
        .add_number_parameter("max_results", "Maximum number of results to return")
        .build_tool(),
    ]


def _simulate_call(name: str) -> str:
    return json.dumps(SIMULATED_RESULTS.get(name, {"error": "Unknown function"}))


@cli.command("function-call")
@click.argument("message")
@click.option("--model", "-m", type=click.Choice(list(MODEL_CHOICES)), default=None, help="Model to use")
@click.option(
    "--tool-choice",
    type=click.Choice(["none", "auto", "required"]),
    default="auto",
    help="Whether the model may or must call a function",
)
@click.pass_obj
def function_call(app: AppContext, message: str, model: str | None, tool_choice: str):
    """Offer demo functions, answer their calls and print the final reply."""
    request = ChatCompletionRequest(
        model=app.model(model),
        messages=[ChatMessage.user(message)],
        tools=_demo_tools(),
        tool_choice=tool_choice,
    )
    _run(_function_call(app, request))


async def _function_call(app: AppContext, request: ChatCompletionRequest):
    click.echo(f"Available functions: {', '.join(t.function.name for t in request.tools)}")
    click.echo(f"Tool choice: {request.tool_choice}\n")
    async with app.client() as client:
        response = await client.chat.create_completion(request)
        if not response.choices:
            return
        reply = response.choices[0].message
        if not reply.tool_calls:
            click.echo("Response (no function calls):")
            click.echo(reply.content or "")
            return

        messages = [*request.messages, ChatMessage.assistant(reply.content, tool_calls=reply.tool_calls)]
        click.echo("Function calls made:")
        for call in reply.tool_calls:
            result = _simulate_call(call.function.name)
            click.echo(f"\n  Function: {call.function.name}")
            click.echo(f"  ID: {call.id}")
            click.echo(f"  Arguments: {call.function.arguments}")
            click.echo(f"  Simulated result: {result}")
            messages.append(ChatMessage.tool(result, tool_call_id=call.id, name=call.function.name))

        follow_up = ChatCompletionRequest(model=request.model, messages=messages, tools=request.tools)
        final = await client.chat.create_completion(follow_up)
    if final.choices and final.choices[0].message.content:
        click.echo("\nFinal response:")
        click.echo(final.choices[0].message.content)


@cli.command("json-mode")
@click.argument("prompt")
@click.option("--model", "-m", type=click.Choice(list(MODEL_CHOICES)), default=None, help="Model to use")
@click.option("--max-tokens", type=int, default=1000, show_default=True, help="Maximum tokens to generate")
@click.option("--pretty", "-p", is_flag=True, help="Pretty print the JSON output")
@click.pass_obj
def json_mode(app: AppContext, prompt: str, model: str | None, max_tokens: int, pretty: bool):
    """Ask for a JSON object response and check that it parses."""
    # JSON mode is only honoured when the prompt itself asks for JSON.
    if "json" not in prompt.lower():
        click.echo("Warning: the prompt should mention 'json' for JSON mode to work", err=True)
        prompt += " Please respond in JSON format."
    request = ChatCompletionRequest(
        model=app.model(model),
        messages=[ChatMessage.user(prompt)],
        max_tokens=max_tokens,
        response_format=ResponseFormat(type="json_object"),
    )
    content = _run(_json_mode(app, request))
    if content is None:
        click.echo("No content returned.")
        return

    click.echo(content)
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        click.echo(f"\nInvalid JSON: {e}", err=True)
        sys.exit(1)
    if pretty:
        click.echo("\nPretty printed:")
        click.echo(json.dumps(parsed, indent=2, sort_keys=True, ensure_ascii=False))
    click.echo("\nValid JSON output")


async def _json_mode(app: AppContext, request: ChatCompletionRequest) -> str | None:
    async with app.client() as client:
        response = await client.chat.create_completion(request)
    if not response.choices:
        return None
    return response.choices[0].message.content


@cli.command()
@click.argument("problem")
@click.option("--max-tokens", type=int, default=32768, show_default=True, help="Maximum tokens to generate")
@click.option("--stream", "use_stream", is_flag=True, help="Stream the response")
@click.option("--hide-reasoning", is_flag=True, help="Show only the final answer")
@click.option("--show-tokens", is_flag=True, help="Show token usage breakdown")
@click.pass_obj
def reasoning(
    app: AppContext,
    problem: str,
    max_tokens: int,
    use_stream: bool,
    hide_reasoning: bool,
    show_tokens: bool,
):
    """Solve a problem with the reasoner model."""
    request = ChatCompletionRequest(
        model=DeepSeekModel.REASONER,
        messages=[ChatMessage.user(problem)],
        max_tokens=max_tokens,
        stream_options=StreamOptions(include_usage=True) if use_stream else None,
    )
    if use_stream:
        _run(_reasoning_stream(app, request, hide_reasoning, show_tokens))
    else:
        _run(_reasoning(app, request, hide_reasoning, show_tokens))


def _echo_reasoning_tokens(usage: Usage | None):
    _echo_usage(usage)
    if usage is not None and usage.completion_tokens_details is not None:
        click.echo(f"  Reasoning tokens: {usage.completion_tokens_details.reasoning_tokens}")


async def _reasoning(app: AppContext, request: ChatCompletionRequest, hide_reasoning: bool, show_tokens: bool):
    async with app.client() as client:
        response = await client.chat.create_completion(request)
    if not response.choices:
        return
    message = response.choices[0].message
    if not hide_reasoning:
        _echo_reasoning(message.reasoning_content)
    click.echo("Answer:")
    click.echo(message.content or "")
    if show_tokens:
        _echo_reasoning_tokens(response.usage)


async def _reasoning_stream(app: AppContext, request: ChatCompletionRequest, hide_reasoning: bool, show_tokens: bool):
    accumulator = ChunkAccumulator()
    in_answer = False
    async with app.client() as client:
        async with client.chat.create_streaming_completion(request) as chunks:
            async for chunk in chunks:
                accumulator.add(chunk)
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.reasoning_content and not hide_reasoning:
                    click.echo(delta.reasoning_content, nl=False)
                if delta.content:
                    if not in_answer:
                        click.echo("\n\nAnswer:")
                        in_answer = True
                    click.echo(delta.content, nl=False)
    click.echo()
    if show_tokens:
        _echo_reasoning_tokens(accumulator.usage)


if __name__ == "__main__":
    cli()
