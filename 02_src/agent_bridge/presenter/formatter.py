"""Text formatting for tool activity, usage footers and Feishu cards."""

import json

from ..models import Usage

TOOL_ICONS = {
    "Bash": "🖥️ Run command",
    "Read": "📖 Read file",
    "Write": "✏️ Write file",
    "Edit": "📝 Edit file",
    "Grep": "🔍 Search content",
    "Glob": "📁 Find files",
    "WebSearch": "🌐 Web search",
    "WebFetch": "🔗 Fetch page",
    "Task": "🤖 Subtask",
    "TodoWrite": "📋 Todo list",
    "Reasoning": "💭 Reasoning",
}

SUBAGENT_ICONS = {
    "Explore": "🔍",
    "Plan": "📋",
    "Bash": "🖥️",
    "general-purpose": "🤖",
}

MAX_RAW_INPUT_CHARS = 200
MAX_TOOL_OUTPUT_CHARS = 500
MAX_TASK_PROMPT_CHARS = 150

COPY_RAW_ACTION = "copy_raw"


def format_tool_start(tool_name: str) -> str:
    # Task is rendered in full by format_tool_end
    if tool_name == "Task":
        return ""
    return f"**{TOOL_ICONS.get(tool_name, f'🔧 {tool_name}')}**"


def format_tool_end(tool_name: str, tool_input: str) -> str:
    """Summarize a tool's raw JSON input."""
    try:
        parsed = json.loads(tool_input)
    except (TypeError, ValueError):
        if len(tool_input) > MAX_RAW_INPUT_CHARS:
            return tool_input[:MAX_RAW_INPUT_CHARS] + "..."
        return tool_input

    if not isinstance(parsed, dict):
        return f"```json\n{json.dumps(parsed, indent=2, ensure_ascii=False)}\n```"

    if tool_name == "Bash" and parsed.get("command"):
        return f"```bash\n{parsed['command']}\n```"
    if tool_name in ("Read", "Write", "Edit") and parsed.get("file_path"):
        return f"📄 `{parsed['file_path']}`"
    if tool_name == "WebSearch" and parsed.get("query"):
        return f'🔍 "{parsed["query"]}"'
    if tool_name == "Grep" and parsed.get("pattern"):
        return f"🔍 `{parsed['pattern']}`"
    if tool_name == "Glob" and parsed.get("pattern"):
        return f"📁 `{parsed['pattern']}`"
    if tool_name == "Reasoning" and parsed.get("reasoning"):
        return f"> {parsed['reasoning']}"
    if tool_name == "Task" and parsed.get("subagent_type"):
        subagent = parsed["subagent_type"]
        icon = SUBAGENT_ICONS.get(subagent, "🤖")
        result = f"{icon} **{subagent}** ({parsed.get('description', '')})"
        prompt = parsed.get("prompt")
        if prompt:
            if len(prompt) > MAX_TASK_PROMPT_CHARS:
                prompt = prompt[:MAX_TASK_PROMPT_CHARS] + "..."
            result += f"\n{prompt}"
        return result
    return f"```json\n{json.dumps(parsed, indent=2, ensure_ascii=False)}\n```"


def format_tool_result(output: str) -> str:
    if len(output) > MAX_TOOL_OUTPUT_CHARS:
        output = output[:MAX_TOOL_OUTPUT_CHARS] + "\n... (output truncated)"
    return f"```\n{output}\n```"


def format_tokens(count: int) -> str:
    return f"{count / 1000:.1f}k" if count >= 1000 else str(count)


def format_usage(usage: Usage) -> str:
    """Footer describing context or token usage and cost."""
    used = usage.total_tokens

    if usage.context_window:
        remaining = usage.context_window - used
        percent = remaining / usage.context_window * 100
        info = (
            f"\n\n---\n📊 Context: {format_tokens(used)} / "
            f"{format_tokens(usage.context_window)} tokens ({percent:.0f}% left)"
        )
    else:
        info = (
            f"\n\n---\n📊 Tokens: {format_tokens(used)} "
            f"(input: {format_tokens(usage.input_tokens)}, "
            f"output: {format_tokens(usage.output_tokens)})"
        )

    if usage.cost_usd is not None:
        info += f" | Cost: ${usage.cost_usd:.4f}"
    return info


def build_card(title: str, content: str, copy_text: str | None = None) -> str:
    """Serialize a Feishu interactive card."""
    elements: list[dict] = [
        {
            "tag": "div",
            "text": {"tag": "lark_md", "content": content},
        }
    ]
    if copy_text:
        elements.append(
            {
                "tag": "action",
                "actions": [
                    {
                        "tag": "button",
                        "text": {"tag": "plain_text", "content": "Copy raw text"},
                        "type": "default",
                        "value": {"action": COPY_RAW_ACTION},
                    }
                ],
            }
        )

    return json.dumps(
        {
            "config": {"wide_screen_mode": True, "enable_forward": True},
            "header": {
                "title": {"content": title, "tag": "plain_text"},
                "template": "blue",
            },
            "elements": elements,
        },
        ensure_ascii=False,
    )
