HELP_TEXT = """Brain CLI - Available Commands:

File Operations:
  "read file.txt"                  - Read a file
  "edit src/app.js"                - Edit a file
  "list ." or "ls"                 - List directory contents
  "search for function in src"     - Search files for text
  "create directory new_dir"       - Create a directory

Git Operations:
  "git status"                     - Show git status
  "git diff" or "diff"             - Show changes
  "git log" or "log 5"             - Show commit history
  "add file.txt"                   - Stage files
  'commit "message"'               - Create commit
  "branches"                       - Show branch info

Codebase Analysis:
  "analyze project"                - Analyze project structure
  "explain codebase"               - Explain architecture
  "show structure"                 - Show project structure
  "find definition MyClass"        - Find symbol definition
  "find references myFunction"     - Find symbol references

Server Management:
  "connect server exa with /path"  - Connect MCP server
  "servers"                        - Show connected servers
  "tools from server_name"         - Show server tools

General Queries:
  "what is artificial intelligence?"  - Ask Brain questions
  "query: summarize the README"       - Send text as-is

System Commands:
  help      - Show this help message
  status    - Show system status
  history   - Show conversation history
  sessions  - List recent sessions (sessions <n> for more)
  clear     - Clear the screen
  exit      - Exit the REPL
"""

DEFAULT_SESSIONS_LIMIT = 10


class BuiltinCommands:
    def __init__(self, runtime):
        self.runtime = runtime
        self._handlers = {
            "help": self.cmd_help,
            "status": self.cmd_status,
            "clear": self.cmd_clear,
            "history": self.cmd_history,
            "sessions": self.cmd_sessions,
            "exit": self.cmd_quit,
            "quit": self.cmd_quit,
        }
        self._prefixed = frozenset({"sessions"})

    def has_command(self, name: str) -> bool:
        return name in self._handlers

    def prefix_commands(self) -> list[str]:
        return sorted(self._prefixed)

    async def handle(self, name: str, args: str) -> bool:
        handler = self._handlers.get(name)
        if not handler:
            return True
        return await handler(args)

    async def cmd_quit(self, args: str) -> bool:
        return False

    async def cmd_help(self, args: str) -> bool:
        self.runtime.renderer.print(HELP_TEXT)
        return True

    async def cmd_status(self, args: str) -> bool:
        await self.runtime.client.request_status()
        return True

    async def cmd_clear(self, args: str) -> bool:
        out = self.runtime.renderer.out
        out.write("\033[2J\033[H")
        out.flush()
        return True

    async def cmd_history(self, args: str) -> bool:
        self.runtime.renderer.history(self.runtime.history())
        return True

    async def cmd_sessions(self, args: str) -> bool:
        limit = int(args) if args.isdigit() else DEFAULT_SESSIONS_LIMIT
        summaries = self.runtime.store.list_sessions(limit=limit)
        self.runtime.renderer.sessions(summaries, active_id=self.runtime.session_id)
        return True
