"""Scriptable tool server used by the client tests.

Speaks newline-delimited JSON-RPC 2.0 on stdin/stdout. Behaviour is
selected with the FAKE_MCP_MODE environment variable:

- normal: answer everything
- fail_initialize: reply to initialize with an error envelope
- no_tools_list: reply to tools/list with an error envelope
- noisy: print banner text and a malformed envelope before replying
- stderr_flood: write an oversized stderr line and more stderr output
  before answering each tool call

Tools:

- echo: returns its arguments
- llm_complete: returns its arguments, flagged as an LLM reply
- fail: replies with an error envelope
- hold: withholds replies until ``batch`` hold calls arrived, then answers
  them in shuffled order
- never: never replies
- late: answers only once the next message arrives
- notify: emits a notification before replying
- split: writes its reply in two chunks
- crash: exits with ``code`` (default 3) without replying
"""

import json
import os
import random
import sys
import time

MODE = os.environ.get("FAKE_MCP_MODE", "normal")

TOOLS = [
    {
        "name": "echo",
        "description": "Return the arguments unchanged",
        "inputSchema": {"type": "object"},
    },
    {"name": "llm_complete", "description": "Pretend LLM completion"},
    {"name": "fail", "description": "Always fails"},
    {"name": "hold", "description": "Replies in batches"},
    {"name": "never", "description": "Never replies"},
    {"name": "late", "description": "Replies after the next message"},
    {"name": "notify", "description": "Sends a notification first"},
    {"name": "split", "description": "Reply arrives in two chunks"},
    {"name": "crash", "description": "Exits the server"},
    {"description": "Descriptor without a name is skipped"},
]


def send(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def reply(request_id, result):
    send({"jsonrpc": "2.0", "id": request_id, "result": result})


def error(request_id, code, message):
    send(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message, "data": {"mode": MODE}},
        }
    )


def flood_stderr():
    sys.stderr.write("x" * 70_000 + "\n")
    for i in range(4000):
        sys.stderr.write(f"log line {i:04d} " + "y" * 86 + "\n")
    sys.stderr.flush()


class FakeServer:
    def __init__(self):
        self.initialized = False
        self.held = []
        self.late = []

    def handle(self, message):
        for late_id in self.late:
            reply(late_id, {"late": True})
        self.late.clear()

        method = message.get("method")
        request_id = message.get("id")

        if request_id is None:
            if method == "notifications/initialized":
                self.initialized = True
            return

        if method == "initialize":
            self.handle_initialize(request_id, message.get("params") or {})
        elif method == "tools/list":
            if MODE == "no_tools_list":
                error(request_id, -32603, "tool registry unavailable")
            else:
                reply(request_id, {"tools": TOOLS})
        elif method == "tools/call":
            params = message.get("params") or {}
            if MODE == "stderr_flood":
                flood_stderr()
            self.handle_call(request_id, params.get("name"), params.get("arguments") or {})
        else:
            error(request_id, -32601, f"Method not found: {method}")

    def handle_initialize(self, request_id, params):
        if MODE == "fail_initialize":
            error(request_id, -32602, "unsupported protocol version")
            return
        if MODE == "noisy":
            sys.stdout.write("fake tool server booting\n")
            sys.stdout.write('{"jsonrpc": "2.0", broken\n')
            sys.stdout.write('["jsonrpc"]\n')
            sys.stdout.flush()
        reply(
            request_id,
            {
                "protocolVersion": params.get("protocolVersion"),
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-tool-server", "version": "1.0.0"},
                "clientInfo": params.get("clientInfo"),
            },
        )

    def handle_call(self, request_id, name, arguments):
        if name == "echo":
            reply(request_id, {"echo": arguments, "initialized": self.initialized})
        elif name == "llm_complete":
            reply(request_id, {"echo": arguments, "llm": True})
        elif name == "fail":
            error(request_id, -32000, arguments.get("message", "tool failed"))
        elif name == "hold":
            self.held.append((request_id, arguments))
            if len(self.held) >= arguments.get("batch", 1):
                batch, self.held = self.held, []
                random.Random(arguments.get("seed", 7)).shuffle(batch)
                for held_id, held_arguments in batch:
                    reply(held_id, {"token": held_arguments.get("token")})
        elif name == "never":
            pass
        elif name == "late":
            self.late.append(request_id)
        elif name == "notify":
            send(
                {
                    "jsonrpc": "2.0",
                    "method": "notifications/message",
                    "params": {"level": "info", "data": arguments},
                }
            )
            reply(request_id, {"notified": True})
        elif name == "split":
            data = json.dumps({"jsonrpc": "2.0", "id": request_id, "result": {"split": True}})
            middle = len(data) // 2
            sys.stdout.write(data[:middle])
            sys.stdout.flush()
            time.sleep(0.05)
            sys.stdout.write(data[middle:] + "\n")
            sys.stdout.flush()
        elif name == "crash":
            sys.exit(arguments.get("code", 3))
        else:
            error(request_id, -32601, f"Unknown tool: {name}")


def main():
    sys.stderr.write(f"fake tool server started in {MODE} mode\n")
    sys.stderr.flush()

    server = FakeServer()
    while True:
        line = sys.stdin.readline()
        if not line:
            break
        line = line.strip()
        if not line:
            continue
        server.handle(json.loads(line))


if __name__ == "__main__":
    main()
