#!/usr/bin/env python3
"""Ad hoc pipeline runner for Menu Matcher.

Runs extraction, quiz and recommendation in-process without starting the API
server.

Usage:
    python query.py --image menus/bistro.jpg
    python query.py --text "Caesar Salad - $12, Grilled Salmon - $24"
    python query.py --image menus/bistro.jpg --auto      # answer every question with its first option
    python query.py --image menus/bistro.jpg --debug     # also print raw JSON results

Features:
- Menu photo (JPEG/PNG/WEBP/HEIC) or plain-text menus
- Interactive quiz in the terminal (multi-select questions take comma-separated numbers)
- Recommendation rendered as tables with rich
"""

import asyncio
import base64
import sys
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from src.models.models import ImageBase64Source, MenuItem, MenuTextSource, QuizQuestion, Recommendation
from src.services.menu_extraction import extract_menu
from src.services.quiz import generate_quiz, get_static_questions, summarize_menu
from src.services.recommendation import recommend
from src.services.transcript import build_transcript
from src.utils.errors import MenuServiceError, UpstreamError
from src.utils.logger import logger

console = Console()

Answer = Union[str, list[str]]


def render_items(title: str, items: list[MenuItem]) -> Table:
    table = Table(title=title)
    table.add_column("Dish", style="bold")
    table.add_column("Course")
    table.add_column("Price", justify="right")
    table.add_column("Description", style="dim")
    for item in items:
        price = f"${item.price:.2f}" if item.price is not None else "-"
        table.add_row(item.name, item.course or "-", price, item.description or "")
    return table


def ask(question: QuizQuestion, index: int, auto: bool) -> Answer:
    """Prompt for one answer. Multi-select questions accept "1,3"."""
    if auto:
        return [question.answers[0]] if question.allow_multiple else question.answers[0]

    console.print(f"\n[bold cyan]{index + 1}. {question.question}[/bold cyan]")
    for i, option in enumerate(question.answers, start=1):
        console.print(f"  {i}. {option}")

    hint = "numbers, comma-separated" if question.allow_multiple else "number"
    while True:
        raw = Prompt.ask(f"Your answer ({hint})")
        try:
            picks = [int(part) for part in raw.split(",") if part.strip()]
        except ValueError:
            console.print("[red]Enter option numbers only[/red]")
            continue
        if not picks or any(not 1 <= p <= len(question.answers) for p in picks):
            console.print("[red]Pick from the listed options[/red]")
            continue
        if len(picks) > 1 and not question.allow_multiple:
            console.print("[red]This question takes a single answer[/red]")
            continue
        chosen = [question.answers[p - 1] for p in picks]
        return chosen if question.allow_multiple else chosen[0]


async def load_quiz(items: list[MenuItem]) -> list[QuizQuestion]:
    try:
        return await generate_quiz(summarize_menu(items))
    except UpstreamError as e:
        logger.warning(f"Quiz generation failed ({e.message}); using static questions")
        return get_static_questions()


async def run_pipeline(image_path: Optional[str], menu_text: Optional[str], auto: bool, debug: bool) -> None:
    if image_path:
        image_file = Path(image_path)
        if not image_file.exists():
            console.print(f"[red]✗ Error: Image file not found: {image_path}[/red]")
            sys.exit(1)
        logger.info(f"Loading image: {image_file.name}...")
        source = ImageBase64Source(data=base64.b64encode(image_file.read_bytes()).decode("utf-8"))
    else:
        source = MenuTextSource(text=menu_text)

    with console.status("Reading the menu..."):
        items = await extract_menu(source)
    if not items:
        console.print("[yellow]No menu items found. Try again with a clearer photo of the menu.[/yellow]")
        sys.exit(1)
    console.print(render_items(f"Menu ({len(items)} items)", items))

    with console.status("Writing your quiz..."):
        questions = await load_quiz(items)
    answers = [ask(q, i, auto) for i, q in enumerate(questions)]
    transcript = build_transcript((q.question, a) for q, a in zip(questions, answers))

    with console.status("Picking your dishes..."):
        suggestion: Recommendation = await recommend(items, transcript)

    console.print()
    console.print(f"[bold green]{suggestion.description}[/bold green]")
    console.print(render_items("Order this", suggestion.selected_items))
    if suggestion.alternate_choices:
        console.print(render_items("Or try", suggestion.alternate_choices))

    if debug:
        console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
        console.print_json(data=suggestion.model_dump(by_alias=True))


def main(argv: list[str]) -> None:
    image_path = None
    menu_text = None
    auto = False
    debug = False

    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in ("--image", "--text"):
            if i + 1 >= len(argv):
                print(f"Error: {arg} flag requires a value")
                sys.exit(1)
            if arg == "--image":
                image_path = argv[i + 1]
            else:
                menu_text = argv[i + 1]
            i += 2
        elif arg == "--auto":
            auto = True
            i += 1
        elif arg == "--debug":
            debug = True
            i += 1
        else:
            print(f"Unknown argument: {arg}")
            sys.exit(1)

    if not image_path and not menu_text:
        print("Usage: python query.py (--image PATH | --text MENU) [--auto] [--debug]")
        sys.exit(1)

    try:
        asyncio.run(run_pipeline(image_path, menu_text, auto, debug))
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except MenuServiceError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        if e.details:
            console.print(f"[dim]{e.details}[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    main(sys.argv[1:])
