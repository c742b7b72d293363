"""
Prompt templates for the Diff Reviewer.

This module contains the reviewer request templates, separated from the
dispatching code for better maintainability.
"""

from enum import Enum
from typing import Optional

from .models import DiffUnit
from .utils import sanitize_code_content, sanitize_text


class ReviewMode(Enum):
    """Different review modes."""
    STRICT = "strict"
    STANDARD = "standard"
    LENIENT = "lenient"
    SECURITY_FOCUSED = "security_focused"
    PERFORMANCE_FOCUSED = "performance_focused"


# Base prompt template for all review modes
BASE_PROMPT_TEMPLATE = """You are an expert code reviewer. Review the diff below and respond with ONLY valid JSON.

REQUIRED OUTPUT FORMAT:
{
  "score": 85,
  "canMerge": true,
  "summary": "Brief 2-3 sentence overview of the change",
  "findings": [
    {
      "lineNumber": 42,
      "severity": "info|low|medium|high|critical",
      "category": "bug|security|performance|style|maintainability",
      "message": "What is wrong and why it matters",
      "suggestion": "How to fix it (code or prose)",
      "quote": "exact code from the target line (no +/- prefix)"
    }
  ]
}

If no issues: {"score": 100, "canMerge": true, "summary": "...", "findings": []}

STRICT OUTPUT RULES:
- Start the response with '{' and end with '}'.
- No markdown fences around JSON. No conversational text.
- 'score' is an integer from 0 to 100.
- Set 'canMerge' to false if there are critical security issues or major bugs.

ANCHORING:
- Every diff line below is prefixed with its file line number.
- 'lineNumber' MUST be one of those numbers; prefer '+' (added) lines.
- 'quote' must be copied verbatim from the chosen line. If you cannot anchor confidently, omit the item.

SCORING:
- 90-100: Excellent code, minor or no issues
- 80-89: Good code, some improvements needed
- 70-79: Acceptable code, several issues to address
- 60-69: Poor code, significant problems
- Below 60: Critical issues, must fix before merge

If you cannot produce JSON, end your answer with a line of the form **SCORE: <0-100>**.
"""

# Additional noise control instructions
NOISE_CONTROL = """
- Avoid false positives; prefer omission over speculation.
- Do not praise or add meta commentary inside findings.
- Do not recommend reintroducing code that the diff removes unless removal breaks existing behavior.
"""

# Mode-specific instructions
MODE_INSTRUCTIONS = {
    ReviewMode.STRICT: """
- Identify ALL issues, including maintainability and style problems.
- Be thorough in finding correctness, security, performance, error handling, and resource management problems.""",

    ReviewMode.STANDARD: """
- Focus on bugs, security, performance, and error handling.
- Mention style only when it materially hurts readability.""",

    ReviewMode.LENIENT: """
- Only flag definite bugs and security issues. Be extra conservative and concise.""",

    ReviewMode.SECURITY_FOCUSED: """
- Focus EXCLUSIVELY on security vulnerabilities (hardcoded secrets, injection, XSS, unsafe deserialization).""",

    ReviewMode.PERFORMANCE_FOCUSED: """
- Focus EXCLUSIVELY on performance issues (inefficient algorithms, needless allocations, leaks).""",
}


def get_review_prompt_template(review_mode: ReviewMode, custom_instructions: str = "") -> str:
    """Get the complete prompt template for code review.

    Args:
        review_mode: The review mode to use
        custom_instructions: Optional custom instructions to append

    Returns:
        The complete prompt template string
    """
    mode_instruction = MODE_INSTRUCTIONS.get(review_mode, "")

    prompt = BASE_PROMPT_TEMPLATE + NOISE_CONTROL + mode_instruction

    if custom_instructions:
        prompt += f"""

OPTIONAL ADDITIONAL INSTRUCTIONS (from workflow input):
{custom_instructions}
Apply these only if they do NOT conflict with the output format above.
"""

    return prompt


def format_unit_diff(unit: DiffUnit) -> str:
    """Render a unit's hunks with every line prefixed by its file line number."""
    blocks = []
    for chunk in unit.chunks:
        rendered = [chunk.header] if chunk.header else []
        for line in chunk.lines:
            number = line.source_line_number if line.source_line_number is not None else ""
            rendered.append(f"{number} {line.line_type.prefix}{sanitize_code_content(line.content)}")
        blocks.append("\n".join(rendered))
    return "\n\n".join(blocks)


def build_review_request(
    template: str,
    unit: DiffUnit,
    guidelines: str = "",
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    """Assemble the full request text sent to the reviewer for one unit."""
    sections = [template.rstrip()]

    if guidelines:
        sections.append(guidelines.strip())

    if title:
        context = f"## PULL REQUEST\nTitle: {sanitize_text(title)}"
        if description:
            context += f"\nDescription:\n{sanitize_text(description)}"
        sections.append(context)

    sections.append(
        "## FILE TO REVIEW\n"
        f"File: {unit.file_path}\n"
        f"Language: {unit.language}\n\n"
        "```diff\n"
        f"{format_unit_diff(unit)}\n"
        "```"
    )

    return "\n\n".join(sections) + "\n"
