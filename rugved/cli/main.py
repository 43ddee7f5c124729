"""CLI entry point for the Rugved chat client."""

import click
import json
import sys
import asyncio
from pathlib import Path
import structlog
from typing import List, Optional

from .. import __version__
from ..core.chat_session import ChatConfig, ChatSession
from ..core.pipeline import PipelineState, TurnResult
from ..core.sanitizer import sanitize
from ..config.settings import settings
from ..errors import (
    CaptureFailedError,
    MissingCredentialError,
    UnsupportedCaptureError,
)
from ..providers import registry, register_all_providers
from ..state.conversation_store import Message
from ..state.credentials import FileCredentialStore
from ..utils.logging import setup_logging
from .clipboard import copy_text
from .console import LineReader
from .render import ASSISTANT_LABEL, format_message


logger = structlog.get_logger()


HELP_TEXT = """Commands:
  /mic      speak instead of typing
  /voice    toggle spoken replies
  /say N    speak message N again
  /copy N   copy message N to the clipboard
  /history  show the conversation
  /clear    start a new conversation
  /logout   forget the API key and the conversation
  /quit     leave the chat"""


def resolve_provider(kind: str, value: Optional[str], available: List[str]) -> Optional[str]:
    """Validate a provider name; 'none' disables the provider."""
    if value is None or value.lower() == "none":
        return None
    if not available:
        click.echo(click.style(f"No {kind} providers available, {kind} disabled.", fg="yellow"))
        return None
    if value not in available:
        raise click.BadParameter(
            f"Invalid {kind} provider '{value}'. "
            f"Available options: {', '.join(available)}, none",
            param_hint=f"--{kind}-provider",
        )
    return value


def credential_store() -> FileCredentialStore:
    return FileCredentialStore(
        path=settings.credentials.path, env_var=settings.credentials.env_var
    )


def show_typing(state: PipelineState) -> None:
    if state is PipelineState.SENDING:
        click.echo(click.style(f"{ASSISTANT_LABEL} is typing...", dim=True))


def ensure_credential(session: ChatSession) -> bool:
    """Ask for an API key when none is stored."""
    if session.credentials.get():
        return True

    click.echo("Enter your Gemini API key to start chatting.")
    try:
        api_key = click.prompt(
            "API key", default="", show_default=False, hide_input=True
        )
    except click.Abort:
        api_key = ""

    if not api_key.strip():
        click.echo(click.style("An API key is required to chat.", fg="red"))
        return False

    session.login(api_key)
    click.echo(click.style("API key saved.", fg="green"))
    return True


async def submit(session: ChatSession, text: str) -> Optional[TurnResult]:
    try:
        result = await session.send(text)
    except MissingCredentialError as e:
        click.echo(click.style(str(e), fg="yellow"))
        if not ensure_credential(session):
            return None
        result = await session.send(text)

    if result is not None:
        click.echo(format_message(result.assistant_message))
    return result


async def listen(session: ChatSession, reader: LineReader) -> Optional[str]:
    """Capture one utterance; a line typed meanwhile stops listening."""
    capture = asyncio.ensure_future(session.capture_text())
    typed = asyncio.ensure_future(reader.wait_for_line())
    try:
        await asyncio.wait({capture, typed}, return_when=asyncio.FIRST_COMPLETED)
        if not capture.done():
            # The line is the stop request; the chat loop must not see it
            await reader.readline()
            await session.voice.stop_capture()
            click.echo(click.style("Stopped listening.", dim=True))
        return await capture
    finally:
        # An unfinished wait leaves the line queued for the chat loop
        typed.cancel()
        capture.cancel()


async def capture_and_submit(session: ChatSession, reader: LineReader) -> None:
    click.echo(click.style("Listening... speak now (press Enter to stop).", dim=True))
    try:
        text = await listen(session, reader)
    except UnsupportedCaptureError as e:
        click.echo(click.style(str(e), fg="yellow"))
        return
    except CaptureFailedError as e:
        click.echo(click.style(str(e), fg="red"))
        return

    if not text:
        click.echo(click.style("No speech detected.", dim=True))
        return

    click.echo(f"{click.style('You (voice):', fg='green', bold=True)} {text}")
    await submit(session, text)


def show_history(session: ChatSession) -> None:
    messages = session.store.snapshot()
    if not messages:
        click.echo(click.style("No messages yet.", dim=True))
        return
    for index, message in enumerate(messages, start=1):
        click.echo(format_message(message, index))


def pick_message(session: ChatSession, command: str, argument: str) -> Optional[Message]:
    """Look up message N for /say and /copy."""
    messages = session.store.snapshot()
    try:
        index = int(argument)
    except ValueError:
        click.echo(click.style(f"Usage: {command} N", fg="yellow"))
        return None

    if not 1 <= index <= len(messages):
        click.echo(click.style(f"There is no message {index}.", fg="yellow"))
        return None
    return messages[index - 1]


def say_message(session: ChatSession, argument: str) -> None:
    message = pick_message(session, "/say", argument)
    if message is None:
        return
    if session.pipeline.speak_message(message) is None:
        click.echo(click.style("Nothing to speak.", dim=True))


def copy_message(session: ChatSession, argument: str) -> None:
    message = pick_message(session, "/copy", argument)
    if message is None:
        return
    if copy_text(message.text):
        click.echo(f"Copied message {argument}.")
    else:
        click.echo(click.style("Could not copy to the clipboard.", fg="yellow"))


async def handle_command(session: ChatSession, line: str, reader: LineReader) -> bool:
    """Run an in-chat command; returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    command = command.lower()

    if command in ("/quit", "/exit"):
        return False
    elif command == "/mic":
        await capture_and_submit(session, reader)
    elif command == "/voice":
        enabled = session.toggle_voice_output()
        click.echo(f"Voice output {'on' if enabled else 'off'}.")
    elif command == "/say":
        say_message(session, argument.strip())
    elif command == "/copy":
        copy_message(session, argument.strip())
    elif command == "/history":
        show_history(session)
    elif command == "/clear":
        session.clear()
        click.echo("Conversation cleared.")
    elif command == "/logout":
        session.logout()
        click.echo("Logged out.")
        return ensure_credential(session)
    elif command == "/help":
        click.echo(HELP_TEXT)
    else:
        click.echo(click.style(f"Unknown command: {command}", fg="yellow"))
        click.echo(HELP_TEXT)
    return True


async def run_chat(session: ChatSession, reader: LineReader) -> None:
    """Interactive read-submit-render loop."""
    try:
        click.echo(click.style(f"Rugved AI v{__version__}", bold=True))
        click.echo("Type a message, or /help for commands.\n")
        if len(session.store):
            show_history(session)

        if not ensure_credential(session):
            return

        while True:
            click.echo(click.style("You: ", fg="green", bold=True), nl=False)
            line = await reader.readline()
            if line is None:
                click.echo()
                break

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_command(session, line, reader):
                    break
                continue

            await submit(session, line)
    finally:
        reader.close()
        await session.close()
        click.echo("Goodbye!")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.version_option(__version__, prog_name="rugved")
def cli(debug: bool, config: Optional[str]):
    """Rugved AI: chat with Gemini by text or voice."""
    if config:
        settings.config_file = Path(config)
        settings.reload()

    setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
        quiet=True,
    )

    issues = settings.validate()
    for issue in issues:
        logger.warning("Configuration issue", issue=issue)

    register_all_providers()


@cli.command()
@click.option("--mock", is_flag=True, help="Run with mock providers (no API calls)")
@click.option("--no-voice-output", is_flag=True, help="Do not speak replies")
@click.option(
    "--capture-provider",
    default=lambda: settings.voice.capture_provider,
    help="Speech capture provider, or 'none'",
)
@click.option(
    "--speech-provider",
    default=lambda: settings.voice.speech_provider,
    help="Speech output provider, or 'none'",
)
@click.option(
    "--transcript",
    type=click.Path(dir_okay=False),
    help="Load the conversation from, and save it to, this file",
)
def chat(
    mock: bool,
    no_voice_output: bool,
    capture_provider: Optional[str],
    speech_provider: Optional[str],
    transcript: Optional[str],
):
    """Start an interactive chat."""
    if not mock:
        capture_provider = resolve_provider(
            "capture", capture_provider, registry.list_capture_providers()
        )
        speech_provider = resolve_provider(
            "speech", speech_provider, registry.list_speech_providers()
        )

    config = ChatConfig(
        capture_provider=capture_provider,
        speech_provider=speech_provider,
        voice_output=settings.voice.voice_output and not no_voice_output,
        mock_mode=mock,
        transcript_path=transcript,
    )

    async def main():
        session = ChatSession(config, on_state_change=show_typing)
        await run_chat(session, LineReader())

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        click.echo("\nGoodbye!")
    except (OSError, ValueError) as e:
        logger.error("Chat failed", error=str(e))
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


@cli.command()
@click.argument("text", required=False)
@click.option("--json", "json_output", is_flag=True, help="Output result as JSON")
@click.option("--mock", is_flag=True, help="Use a mock model (no API calls)")
@click.option("--speak", is_flag=True, help="Speak the reply aloud")
def ask(text: Optional[str], json_output: bool, mock: bool, speak: bool):
    """
    Ask a single question and print the reply.

    TEXT is read from standard input when omitted.
    """
    if text is None:
        text = click.get_text_stream("stdin").read()
    if not text or not text.strip():
        click.echo(click.style("No input provided.", fg="red"), err=True)
        sys.exit(1)

    config = ChatConfig(
        capture_provider=None,
        speech_provider=settings.voice.speech_provider if speak else None,
        voice_output=speak,
        mock_mode=mock,
    )

    async def main() -> TurnResult:
        session = ChatSession(config)
        try:
            result = await session.send(text)
            await session.voice.wait_until_spoken()
            return result
        finally:
            await session.close()

    try:
        result = asyncio.run(main())
    except MissingCredentialError as e:
        if json_output:
            click.echo(json.dumps({"input": text, "error": str(e)}, indent=2))
        else:
            click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)
    except (OSError, ValueError) as e:
        logger.error("Ask failed", error=str(e))
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    reply = result.assistant_message
    if json_output:
        output = {
            "input": text,
            "response": reply.text,
            "display": sanitize(reply.text).markup,
            "speech": result.speech_text,
            "state": result.state.value,
            "error": reply.error,
        }
        click.echo(json.dumps(output, indent=2, ensure_ascii=False))
    else:
        click.echo(format_message(reply))

    if not result.succeeded:
        sys.exit(1)


@cli.command()
@click.option("--key", help="API key to store (prompted for when omitted)")
def login(key: Optional[str]):
    """Store the Gemini API key."""
    if not key:
        key = click.prompt("Gemini API key", hide_input=True)

    store = credential_store()
    try:
        store.set(key)
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    except OSError as e:
        logger.error("Failed to store API key", error=str(e))
        click.echo(click.style(f"Error: could not write {store.path}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"API key saved to {store.path}", fg="green"))


@cli.command()
def logout():
    """Forget the stored Gemini API key."""
    store = credential_store()
    store.clear()
    click.echo("Logged out.")
    if store.env_var and store.get():
        click.echo(
            click.style(
                f"Note: {store.env_var} is still set in the environment.", fg="yellow"
            )
        )


@cli.command()
def providers():
    """List available providers."""
    for kind, names in (
        ("Capture", registry.list_capture_providers()),
        ("Inference", registry.list_inference_providers()),
        ("Speech", registry.list_speech_providers()),
    ):
        click.echo(f"{kind} providers ({len(names)})")
        for name in names:
            click.echo(f"  - {name}")

    click.echo("\nUse --capture-provider or --speech-provider to pick one for chat.")


@cli.command(name="config")
@click.option(
    "--save",
    "save_path",
    type=click.Path(dir_okay=False),
    help="Write the effective settings to this file",
)
def show_config(save_path: Optional[str]):
    """Show the effective settings."""
    if not save_path:
        click.echo(json.dumps(settings.to_dict(), indent=2))
        return

    try:
        settings.save_to_file(save_path)
    except OSError as e:
        logger.error("Failed to save settings", error=str(e))
        click.echo(click.style(f"Error: could not write {save_path}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(f"Settings saved to {save_path}", fg="green"))


if __name__ == "__main__":
    cli()
