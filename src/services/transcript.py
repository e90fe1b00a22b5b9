"""Question/answer transcript passed from the quiz to the recommender."""

from typing import Iterable, Sequence, Union

Answer = Union[str, Sequence[str]]


def format_answer(answer: Answer) -> str:
    if isinstance(answer, str):
        return answer.strip()
    return ", ".join(a.strip() for a in answer)


def build_transcript(pairs: Iterable[tuple[str, Answer]]) -> str:
    """Serialize (question, answer) pairs in quiz order.

    Each pair becomes ``Q: <question> A: <answer>``; pairs are separated by a
    blank line and multi-select answers are comma-joined.

    Example:
        >>> build_transcript([("Spice?", "Hot"), ("Protein?", ["Chicken", "Beef"])])
        'Q: Spice? A: Hot\\n\\nQ: Protein? A: Chicken, Beef'
    """
    return "\n\n".join(f"Q: {question.strip()} A: {format_answer(answer)}" for question, answer in pairs)


def transcript_answers(transcript: str) -> list[str]:
    """Extract the answer text of each ``Q: ... A: ...`` line, in order."""
    answers = []
    for line in transcript.splitlines():
        if " A: " in line:
            answers.append(line.split(" A: ", 1)[1].strip())
        elif line.strip().startswith("A:"):
            answers.append(line.strip()[2:].strip())
    return answers
