# =============================================================================
# main.py  —  Entry Point: chat with one of the registered agents
# =============================================================================
#
# HOW TO RUN:
#   python main.py                       # calendar_agent
#   python main.py data_ingestion_agent  # any id from --list
#   python main.py --list
#
# WHAT HAPPENS:
#   1. Builds the chosen ADK agent from the registry (agent/registry.py)
#   2. Sets up an in-memory session
#   3. Reads a line from the user, streams the agent's events, prints the
#      final text and every tool call it made
#
# GOOGLE ADK CONCEPTS USED:
#   - Runner: Manages the agent's execution lifecycle
#   - SessionService: Tracks conversation state across turns
#   - Content/Part: ADK's message format
#   - Event stream: Updates as the agent thinks and calls tools
# =============================================================================

import argparse
import asyncio

from dotenv import load_dotenv

# Must run BEFORE the agent is created: LiteLlm reads OPENROUTER_API_KEY
# and the registry reads AGENT_MODEL from the environment.
load_dotenv()

from google.adk.runners import Runner
from google.adk.sessions import InMemorySessionService
from google.genai import types

from agent.registry import create_agent, get_agent_spec, list_agents

APP_NAME = "agent_toolkit"
USER_ID = "demo_user"


async def run_agent(agent_id: str):
    """Run one agent interactively until the user quits."""
    spec = get_agent_spec(agent_id)

    print("=" * 70)
    print(f"  {spec.name.upper()}")
    print(f"  {spec.description}")
    print("=" * 70)
    print("\n🔧 Initializing agent...")
    agent = create_agent(agent_id)

    session_service = InMemorySessionService()
    runner = Runner(
        agent=agent,
        app_name=APP_NAME,
        session_service=session_service,
    )
    session = await session_service.create_session(app_name=APP_NAME, user_id=USER_ID)

    print("✅ Agent initialized and ready!\n")
    print("💬 Type your request (or 'quit' to exit)\n")
    print("-" * 70)

    while True:
        try:
            user_input = input("\n🧑 You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\n👋 Goodbye!")
            break

        if user_input.lower() in ("quit", "exit", "q"):
            print("\n👋 Goodbye!")
            break

        if not user_input:
            continue

        user_message = types.Content(role="user", parts=[types.Part(text=user_input)])

        print("\n🤖 Agent is thinking...\n")
        print("-" * 70)

        final_response = ""
        async for event in runner.run_async(
            user_id=USER_ID,
            session_id=session.id,
            new_message=user_message,
        ):
            if event.content and event.content.parts:
                for part in event.content.parts:
                    if getattr(part, "text", None):
                        final_response = part.text
                    if getattr(part, "function_call", None):
                        print(f"  🔧 Calling tool: {part.function_call.name}")

        print("-" * 70)
        if final_response:
            print(f"\n🤖 Agent:\n\n{final_response}")
        else:
            print("\n⚠️  No response generated. The agent may have encountered an error.")

        print("\n" + "=" * 70)


def main():
    parser = argparse.ArgumentParser(description="Chat with a registered agent.")
    parser.add_argument("agent_id", nargs="?", default="calendar_agent", help="Agent to run")
    parser.add_argument("--list", action="store_true", help="List registered agents and exit")
    args = parser.parse_args()

    if args.list:
        for entry in list_agents():
            print(f"{entry['id']:<22} {entry['description']}")
            print(f"{'':<22} tools: {', '.join(entry['tools'])}")
        return

    try:
        get_agent_spec(args.agent_id)
    except KeyError as exc:
        parser.error(exc.args[0])

    asyncio.run(run_agent(args.agent_id))


if __name__ == "__main__":
    main()
