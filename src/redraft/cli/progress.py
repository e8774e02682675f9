"""Progress feedback display for CLI operations."""

import click


def show_streaming(model: str, scope: str) -> None:
    """Show that a request has been sent.

    Args:
        model: Model selector in use
        scope: Edit scope (whole, section, selection, chat)
    """
    click.echo(f"Streaming {scope} request... (using model: {model})\n", err=True)


def show_fragment(text: str) -> None:
    """Write streamed text without a trailing newline."""
    click.echo(text, nl=False)


def show_error(message: str) -> None:
    """Show error message.

    Args:
        message: Error message to display
    """
    click.echo(f"Error: {message}", err=True)
