"""
Blocks prompts and tool approvals that match a deny list.

Copy into ~/.agent-extensions/extensions/ or <project>/.agent-extensions/extensions/.
"""

metadata = {
    "name": "prompt-guard",
    "version": "1.0.0",
    "description": "Refuses dangerous prompts and tool calls",
    "capabilities": ["events"],
}

DENY = ("rm -rf /", "DROP DATABASE")


class PromptGuard:
    def on_load(self, context):
        context.set_state("blocked", context.get_state("blocked", 0))

    def on_prompt_started(self, event, context):
        if any(pattern in event.prompt for pattern in DENY):
            context.set_state("blocked", context.get_state("blocked", 0) + 1)
            context.log(f"Blocked prompt: {event.prompt[:40]}", "warning")
            return {"blocked": True}
        return None

    def on_tool_approval(self, event, context):
        command = (event.input or {}).get("command", "")
        if any(pattern in command for pattern in DENY):
            return {"blocked": True, "allowed": False}
        return None


extension = PromptGuard
