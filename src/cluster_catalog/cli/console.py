from rich.console import Console
from rich.theme import Theme

catalog_theme = Theme({
    "info": "cyan",
    "error": "bold red",
    "success": "bold green",
    "cluster": "bold magenta",
    "state.introspected": "green",
    "state.failed": "red",
    "state.pending": "yellow",
    "state.suppressed": "dim",
})

console = Console(theme=catalog_theme)


def state_markup(label: str) -> str:
    """Colours an introspection state label for tables."""
    style = f"state.{label}"
    if style not in catalog_theme.styles:
        style = "dim"
    return f"[{style}]{label}[/]"


def print_step(message: str) -> None:
    console.print(f"[info]»[/info] {message}")


def print_success(message: str) -> None:
    console.print(f"[success]✔ {message}[/success]")


def print_error(message: str) -> None:
    console.print(f"[error]✘ {message}[/error]", highlight=False)
