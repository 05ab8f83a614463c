from dataclasses import dataclass

from brain_cli.intents.commands import Command
from brain_cli.intents.parser import IntentParser


@dataclass(frozen=True)
class RouteResult:
    kind: str
    name: str | None
    args: str
    command: Command | None = None


class InputRouter:
    def __init__(self, builtins, parser: IntentParser):
        self.builtins = builtins
        self.parser = parser

    def route(self, user_input: str) -> RouteResult:
        lowered = user_input.lower()

        if self.builtins.has_command(lowered):
            return RouteResult(kind="builtin", name=lowered, args="")

        for name in self.builtins.prefix_commands():
            if lowered.startswith(name + " "):
                return RouteResult(kind="builtin", name=name, args=user_input[len(name):].strip())

        command = self.parser.parse(user_input)
        return RouteResult(kind="command", name=command.kind, args=user_input, command=command)
