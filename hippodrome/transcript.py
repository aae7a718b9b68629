"""Plain-text renderings of answers and rounds for prompt building."""


def format_answers(answers: dict[str, str]) -> str:
    """'Name: answer' blocks separated by blank lines."""
    return "\n\n".join(f"{name}: {text}" for name, text in answers.items())


def format_numbered(answers: list[str]) -> str:
    """Anonymous 'Participant N: answer' blocks, 1-indexed."""
    return "\n\n".join(f"Participant {i}: {text}" for i, text in enumerate(answers, start=1))


def format_transcript(rounds: list[dict[str, str]]) -> str:
    """All rounds, each headed 'Round N:'."""
    parts = [f"Round {i}:\n{format_answers(rnd)}" for i, rnd in enumerate(rounds, start=1)]
    return "\n\n".join(parts)
