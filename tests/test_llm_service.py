from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from docchat.models import MessageSender
from docchat.services.llm_service import MAX_SOURCE_TEXT_CHARS, LLMService


def test_prior_turns_map_to_chat_roles():
    messages = LLMService.build_messages(
        "and the tax?",
        [
            {"sender": MessageSender.USER, "content": "what is the total?"},
            {"sender": MessageSender.BOT, "content": "$42"},
        ],
    )

    assert isinstance(messages[0], SystemMessage)
    assert isinstance(messages[1], HumanMessage)
    assert isinstance(messages[2], AIMessage)
    assert messages[2].content == "$42"
    assert isinstance(messages[-1], HumanMessage)
    assert messages[-1].content == "and the tax?"


def test_source_text_is_added_to_system_prompt():
    messages = LLMService.build_messages("summarize", [], "Invoice total: $42", "user-files/abc.pdf")

    assert "Invoice total: $42" in messages[0].content
    assert "user-files/abc.pdf" in messages[0].content


def test_long_source_text_is_truncated():
    source = "x" * (MAX_SOURCE_TEXT_CHARS + 100)

    messages = LLMService.build_messages("summarize", [], source)

    assert "x" * MAX_SOURCE_TEXT_CHARS + "..." in messages[0].content
    assert "x" * (MAX_SOURCE_TEXT_CHARS + 1) not in messages[0].content
