"""Prompt construction for initialization, judgement and crossover."""

from __future__ import annotations

from typing import Sequence

from evolving_explanations.datasets.base import Dataset, Example, Test
from evolving_explanations.explanations.candidate import Candidate
from evolving_explanations.llm.client import ChatMessage

EXPLANATIVE_PROMPT = (
    "You are an expert professor in your field of expertise."
    " A good explanation is minimal, deductive, correct and complete."
    " It should be clearly understandable by your PhD students, omitting obvious details"
    " but including all the necessary steps to reach the conclusion."
)

JUDGEMENT_PROMPT = (
    "Be precise about what you think is good or bad in the proposed explanation."
    " Think hard about what might be incorrect in the explanation"
    " and always propose ways to improve it to make it clearer,"
    " more concise if possible, more precise if necessary, and more convincing."
)

FIRST_JUDGEMENT_GOAL = "Your goal is to produce a commentary/judgement of the explanation"
META_JUDGEMENT_GOAL = (
    "Your goal is to judge the commentaries made by other experts on the explanation"
)

CROSSOVER_INSTRUCTION = (
    "Based on the following {count} explanation proposals"
    " and associated commentaries/judgements made by field experts,"
    " propose the most accurate explanation to answer the following question,"
    " focusing on correctness:"
)

CROSSOVER_REQUEST = (
    "Propose the best possible explanation and answer."
    " Start with `REASONING:` and conclude with `ANSWER:`."
)


def task_prompt(dataset: Dataset) -> str:
    return (
        f"{dataset.instructions()}\n\n"
        "Provide a reasoning consisting in multiple steps, using one line per step."
        f" {dataset.reasoning_step_instructions()}"
    )


def _question_block(test: Test) -> str:
    return f"<Question>\n{test.question}\n</Question>"


def _expert_header(dataset: Dataset) -> str:
    return f"<Instructions>\n<Task>\n{task_prompt(dataset)}\n</Task>\n\n{EXPLANATIVE_PROMPT}\n\n"


def format_example(example: Example) -> str:
    reasoning = "\n".join(example.reasoning)
    return (
        "<Example>\n"
        f"QUESTION: {example.question}\n"
        f"REASONING:\n{reasoning}\n"
        f"ANSWER: {example.answer}\n"
        "</Example>"
    )


def init_messages(dataset: Dataset, test: Test, examples: Sequence[Example], n_shot: int) -> list[ChatMessage]:
    """Few-shot prompt: half the examples in the system message, half replayed as turns."""
    half = n_shot // 2
    system = f"<Instructions>\n{task_prompt(dataset)}\n</Instructions>"
    for example in examples[:half]:
        system += "\n\n" + format_example(example)

    messages = [ChatMessage("system", system)]
    for example in examples[half:]:
        reasoning = "\n".join(example.reasoning)
        messages.append(ChatMessage("user", f"QUESTION: {example.question}"))
        messages.append(
            ChatMessage("assistant", f"REASONING:\n{reasoning}\nANSWER: {example.answer}")
        )
    messages.append(ChatMessage("user", f"QUESTION: {test.question}"))
    return messages


def judgement_messages(dataset: Dataset, test: Test, candidate: Candidate) -> list[ChatMessage]:
    """Critique prompt; once critiques exist, the model judges the earlier critiques."""
    goal = META_JUDGEMENT_GOAL if candidate.critiques else FIRST_JUDGEMENT_GOAL
    system = (
        _expert_header(dataset)
        + f"{JUDGEMENT_PROMPT}\n\n"
        + f"{goal} proposed to answer the following question:\n\n"
        + _question_block(test)
        + "\n</Instructions>"
    )

    content = f"The explanation to comment/judge:\n\n{candidate.explanation}"
    if candidate.critiques:
        content += "\n\nThe commentaries made by other experts to judge/comment:"
        for i, critique in enumerate(candidate.critiques):
            content += f"\n\nEXPERT {i}:\n\n{critique}"

    return [ChatMessage("system", system), ChatMessage("user", content)]


def crossover_messages(dataset: Dataset, test: Test, parents: Sequence[Candidate]) -> list[ChatMessage]:
    """Recombination prompt listing each parent's explanation followed by its critiques."""
    system = (
        _expert_header(dataset)
        + CROSSOVER_INSTRUCTION.format(count=len(parents))
        + "\n\n"
        + _question_block(test)
        + "\n</Instructions>"
    )

    sections: list[str] = []
    for i, parent in enumerate(parents):
        section = f"EXPLANATION {i}:\n\n{parent.explanation}"
        for j, critique in enumerate(parent.critiques):
            section += f"\n\nEXPERT JUDGEMENT {i} {j}:\n\n{critique}"
        sections.append(section)
    content = "\n\n".join(sections) + "\n\n" + CROSSOVER_REQUEST

    return [ChatMessage("system", system), ChatMessage("user", content)]
