"""Minimal demonstration of a streamed chat turn against a running Finac app."""

from finac_chat.api.service import run_chat_turn

if __name__ == "__main__":
    question = "How much did I spend on groceries last month?"
    reply = run_chat_turn(question)
    print("User:", question)
    print("Status:", reply["status"], "chat:", reply["chat_id"])
    for m in reply["messages"]:
        print(f"{m['role']}: {m['content']}")
