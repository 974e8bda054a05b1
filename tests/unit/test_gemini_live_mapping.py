# pylint: disable=missing-module-docstring,missing-function-docstring

import base64

import pytest

from adapters.transport.base import (
    AudioChunk,
    Directive,
    ImageFrame,
    KeepAlive,
    TextInput,
    UnsupportedPayloadError,
)
from adapters.transport.gemini_live import (
    build_setup_message,
    encode_realtime_input,
    parse_server_content,
)
from session.session_config import ToolFlags

from fakes import make_config


def test_setup_message_shape():
    config = make_config(model="gemini-test", language="fr-FR", custom_prompt="ctx-123")

    setup = build_setup_message(config)["setup"]

    assert setup["model"] == "models/gemini-test"
    assert setup["generationConfig"]["responseModalities"] == ["TEXT"]
    assert setup["generationConfig"]["speechConfig"] == {"languageCode": "fr-FR"}
    assert "ctx-123" in setup["systemInstruction"]["parts"][0]["text"]
    assert setup["inputAudioTranscription"] == {}
    assert "tools" not in setup


def test_setup_message_enables_search_tool():
    setup = build_setup_message(make_config(tool_flags=ToolFlags(web_search=True)))["setup"]

    assert setup["tools"] == [{"googleSearch": {}}]


def test_text_and_directive_are_realtime_text():
    assert encode_realtime_input(TextInput("hi")) == {"realtimeInput": {"text": "hi"}}
    assert encode_realtime_input(Directive("be brief")) == {"realtimeInput": {"text": "be brief"}}


def test_media_is_base64_with_mime_type():
    audio = encode_realtime_input(AudioChunk(b"\x01\x02"))["realtimeInput"]["audio"]
    image = encode_realtime_input(ImageFrame(b"\xff\xd8"))["realtimeInput"]["video"]

    assert base64.b64decode(audio["data"]) == b"\x01\x02"
    assert audio["mimeType"] == "audio/pcm;rate=16000"
    assert base64.b64decode(image["data"]) == b"\xff\xd8"
    assert image["mimeType"] == "image/jpeg"


def test_keepalive_is_not_a_realtime_message():
    with pytest.raises(UnsupportedPayloadError):
        encode_realtime_input(KeepAlive())


def test_parse_server_content():
    msg = parse_server_content({
        "inputTranscription": {"text": "What is"},
        "modelTurn": {"parts": [{"text": "Four"}, {"inlineData": {}}, {"text": "."}]},
        "generationComplete": True,
    })

    assert msg.input_transcription == "What is"
    assert msg.answer_fragments == ("Four", ".")
    assert msg.generation_complete is True
    assert msg.turn_complete is False


def test_parse_empty_server_content():
    msg = parse_server_content({"turnComplete": True})

    assert msg.input_transcription is None
    assert msg.answer_fragments == ()
    assert msg.turn_complete is True
