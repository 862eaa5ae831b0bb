"""Placeholder substitution, the summary prompt, and the note header.

Two independent template mechanisms live here:

* ``substitute`` scans for single-brace ``{key}`` placeholders and is used for
  the prompt skeleton.
* ``render_header`` replaces the literal ``{{modelName}}`` token by exact string
  match.  The result is used unrendered as the note header *and* as the
  duplicate-detection prefix, so it must never pass through the Markdown
  renderer.
"""

import re
from typing import Mapping

from notesummarizer.models import PromptContext

_PLACEHOLDER = re.compile(r"\{([^{}]*)\}")

MODEL_NAME_TOKEN = "{{modelName}}"

UNTITLED = "Untitled Item"

_SHORT_TITLE_LEN = 50

PROMPT_SKELETON = """\
Below is the full text from a research paper titled "{title}".
--- START OF PAPER ---
{text}
--- END OF PAPER ---

"""

INSTRUCTION_PRESETS: dict[str, str] = {
    "en": """
Please provide a clear and specific summary in English that explains the paper's core contribution. Focus on describing the causal relationship between methods and results.

Structure your answer to address:

1. **What specific problem or limitation in existing work does this paper address?**
2. **What exact method/approach/technique did the authors develop or use?**
3. **What specific results did this method produce, and how do these results solve the original problem?**
4. **What is the broader impact or significance of these findings?**

Requirements:
- Be specific and concrete, avoid vague descriptions
- Clearly connect the method to the results (cause-effect relationship)
- Do NOT simply copy or rephrase the abstract
- Focus on technical details that make the contribution clear
- Include quantitative data if available in the text
""",
    "zh": """
请提供一份清晰、具体的中文摘要，解释论文的核心贡献，重点描述方法与结果之间的因果关系。

请按以下结构回答：

1. **本文针对现有工作中的哪些具体问题或局限？**
2. **作者提出或使用了什么具体方法/思路/技术？**
3. **该方法产生了哪些具体结果？这些结果如何解决原始问题？**
4. **这些发现的更广泛影响或意义是什么？**

要求：
- 具体明确，避免空泛描述
- 清晰体现方法与结果的因果关系
- 不要仅复制或改写摘要（abstract）
- 聚焦能体现贡献的技术细节
- 若原文有定量数据，请尽量包含
""",
}


def substitute(template: str, params: Mapping[str, str]) -> str:
    """Replace ``{key}`` placeholders with ``params[key]`` in a single pass.

    Placeholders whose key is missing from ``params`` are left untouched, and
    substituted values are never scanned again.

    Args:
        template: Text containing zero or more ``{key}`` placeholders.  Keys
            cannot contain braces.
        params:   Replacement values by key.

    Returns:
        The substituted string.
    """

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in params:
            return params[key]
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def render_header(header_template: str, model_name: str) -> str:
    """Return the note header with ``{{modelName}}`` replaced by ``model_name``.

    Only the first occurrence is replaced.
    """
    return header_template.replace(MODEL_NAME_TOKEN, model_name, 1)


def build_summary_prompt(context: PromptContext, instructions: str) -> str:
    """Build the full prompt sent to the LLM.

    ``instructions`` is appended verbatim after the paper text and is never
    parsed.  Placeholders are substituted after the instructions are appended,
    so ``{title}`` written inside the instructions is filled in too.
    """
    return substitute(
        PROMPT_SKELETON + instructions, {"title": context.title, "text": context.text}
    )


def resolve_title(*candidates: str | None) -> str:
    """Return the first non-blank title, or ``"Untitled Item"``."""
    for title in candidates:
        if title and title.strip():
            return title
    return UNTITLED


def short_title(title: str) -> str:
    """Shorten ``title`` to 50 characters plus an ellipsis for status displays."""
    if len(title) > _SHORT_TITLE_LEN:
        return title[:_SHORT_TITLE_LEN] + "..."
    return title
