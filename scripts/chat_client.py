"""
Chat Relay Interactive Terminal Client.

Supports:
- Signup / login with the server's session cookie
- Chatting in the active conversation
- Starting, listing and deleting conversations
- Submitting and polling custom-model fine-tunes
"""

import argparse
import asyncio
import json
import os
from pathlib import Path

import httpx
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ANSI Colors for better UX
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
BLUE = "\033[94m"
MAGENTA = "\033[95m"
RESET = "\033[0m"
BOLD = "\033[1m"


class RelayClient:
    """Thin wrapper over the REST API; the httpx cookie jar carries the session."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def signup(self, name: str, email: str, password: str) -> dict:
        response = await self.client.post("/api/v1/user/signup", json={"name": name, "email": email, "password": password})
        response.raise_for_status()
        return response.json()

    async def login(self, email: str, password: str) -> dict:
        response = await self.client.post("/api/v1/user/login", json={"email": email, "password": password})
        response.raise_for_status()
        return response.json()

    async def auth_status(self) -> dict | None:
        response = await self.client.get("/api/v1/user/auth-status")
        if response.status_code != 200:
            return None
        return response.json()

    async def logout(self) -> None:
        response = await self.client.get("/api/v1/user/logout")
        response.raise_for_status()

    async def send(self, message: str) -> list[dict]:
        response = await self.client.post("/api/v1/chat/new", json={"message": message})
        response.raise_for_status()
        return response.json()["chats"]

    async def conversations(self) -> list[dict]:
        response = await self.client.get("/api/v1/chat/all-conversations")
        response.raise_for_status()
        return response.json()["conversations"]

    async def new_conversation(self) -> dict:
        response = await self.client.post("/api/v1/chat/conversation/new")
        response.raise_for_status()
        return response.json()["conversation"]

    async def delete_conversation(self, conversation_id: str) -> list[dict]:
        response = await self.client.delete(f"/api/v1/chat/conversation/{conversation_id}")
        response.raise_for_status()
        return response.json()["conversations"]

    async def train(self, model_name: str, training_data: list[dict]) -> dict:
        response = await self.client.post(
            "/api/v1/chat/custom-models",
            json={"modelName": model_name, "trainingData": training_data},
        )
        response.raise_for_status()
        return response.json()

    async def custom_models(self) -> list[dict]:
        response = await self.client.get("/api/v1/chat/custom-models")
        response.raise_for_status()
        return response.json()["customModels"]

    async def refresh_model(self, model_id: str) -> dict:
        response = await self.client.post(f"/api/v1/chat/custom-models/{model_id}/refresh")
        response.raise_for_status()
        return response.json()["model"]


def error_text(e: httpx.HTTPStatusError) -> str:
    try:
        return e.response.json().get("cause", e.response.text)
    except ValueError:
        return e.response.text


def load_training_file(path: str) -> list[dict]:
    """Read a JSONL file of ``{"messages": [...]}`` examples."""
    with Path(path).open(encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


async def interactive_auth(relay: RelayClient) -> bool:
    """Interactive authentication flow."""
    if user := await relay.auth_status():
        print(f"{GREEN}Already signed in as {user['email']}{RESET}\n")
        return True

    print(f"\n{BOLD}--- Authentication ---{RESET}")
    print("1. Login (existing account)")
    print("2. Sign up (new account)")
    choice = input(f"\n{BOLD}Choice (1-2): {RESET}").strip()

    email = input(f"{BOLD}Email: {RESET}").strip()
    password = input(f"{BOLD}Password: {RESET}").strip()

    try:
        if choice == "2":
            name = input(f"{BOLD}Name: {RESET}").strip()
            user = await relay.signup(name, email, password)
        else:
            user = await relay.login(email, password)
    except httpx.HTTPStatusError as e:
        print(f"{RED}Authentication failed: {error_text(e)}{RESET}\n")
        return False

    print(f"{GREEN}Signed in as {user['name']} <{user['email']}>{RESET}\n")
    return True


async def handle_command(relay: RelayClient, command: str, args: list[str]) -> None:
    if command == "/new":
        conversation = await relay.new_conversation()
        print(f"{MAGENTA}[Conversation started: {conversation['id']}]{RESET}\n")

    elif command == "/list":
        for conversation in await relay.conversations():
            print(f"  {CYAN}{conversation['id']}{RESET}  {len(conversation['chats'])} chats")
        print()

    elif command == "/delete" and args:
        remaining = await relay.delete_conversation(args[0])
        print(f"{YELLOW}{len(remaining)} conversation(s) left{RESET}\n")

    elif command == "/train" and len(args) == 2:
        result = await relay.train(args[1], load_training_file(args[0]))
        model = result["model"]
        print(f"{GREEN}Submitted {model['name']} (job {model['job_id']}, {model['status']}){RESET}\n")

    elif command == "/models":
        for model in await relay.custom_models():
            print(f"  {CYAN}{model['id']}{RESET}  {model['name']}  {model['status']}  {model.get('model_id') or '-'}")
        print()

    elif command == "/refresh" and args:
        model = await relay.refresh_model(args[0])
        print(f"{CYAN}{model['name']}: {model['status']} {model.get('model_id') or ''}{RESET}\n")

    else:
        print(f"{YELLOW}Unknown command or missing arguments{RESET}\n")


async def chat_loop(url: str) -> None:
    """Main chat loop."""
    print(f"{BOLD}--- Chat Relay CLI Client ---{RESET}")
    print(f"Target: {CYAN}{url}{RESET}")

    async with httpx.AsyncClient(base_url=url, timeout=600.0) as client:
        relay = RelayClient(client)
        if not await interactive_auth(relay):
            return

        print(f"Type '{RED}exit{RESET}' or '{RED}quit{RESET}' to stop.")
        print(f"Commands: {BLUE}/new /list /delete <id> /train <file.jsonl> <name> /models /refresh <id> /logout{RESET}\n")

        while True:
            try:
                user_input = input(f"{BOLD}You > {RESET}").strip()
            except EOFError:
                break

            if not user_input:
                continue
            if user_input.lower() in ["exit", "quit"]:
                break

            try:
                if user_input == "/logout":
                    await relay.logout()
                    print(f"{YELLOW}Logged out.{RESET}")
                    break
                if user_input.startswith("/"):
                    command, *args = user_input.split()
                    await handle_command(relay, command, args)
                    continue

                chats = await relay.send(user_input)
                print(f"{BOLD}Assistant > {RESET}{chats[-1]['content']}\n")
            except httpx.HTTPStatusError as e:
                print(f"{RED}Error {e.response.status_code}: {error_text(e)}{RESET}\n")
            except (httpx.HTTPError, OSError, ValueError) as e:
                print(f"\n{RED}Client Error: {e}{RESET}\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Chat Relay Terminal Client")
    parser.add_argument("--url", default=os.getenv("CHAT_RELAY_URL", "http://localhost:8000"), help="API Base URL")
    args = parser.parse_args()

    try:
        asyncio.run(chat_loop(args.url))
    except KeyboardInterrupt:
        print("\nExiting...")


if __name__ == "__main__":
    main()
