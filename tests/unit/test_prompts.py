# pylint: disable=missing-module-docstring,missing-function-docstring

from adapters.llm.prompts import (
    PROFILE_PROMPTS,
    build_system_prompt,
    verbosity_directive,
    verbosity_reinforcement,
)
from session.session_config import Profile, Verbosity

from fakes import make_config


def test_every_profile_has_a_prompt():
    assert set(PROFILE_PROMPTS) == set(Profile)


def test_system_prompt_embeds_context_and_ends_with_verbosity():
    prompt = build_system_prompt(
        make_config(profile=Profile.MEETING, custom_prompt="Quarterly review", verbosity=Verbosity.VERBOSE)
    )

    assert prompt.startswith(PROFILE_PROMPTS[Profile.MEETING].intro)
    assert "User-provided context\n-----\nQuarterly review\n-----" in prompt
    assert "VERBOSITY PREFERENCE (override)" in prompt
    assert prompt.index("Quarterly review") < prompt.index("VERBOSITY PREFERENCE")


def test_verbosity_texts():
    assert verbosity_reinforcement(Verbosity.SHORT) == "Please answer concisely in 1-3 sentences."
    assert "more detail" in verbosity_reinforcement(Verbosity.VERBOSE)
    assert verbosity_directive(Verbosity.SHORT) == "From now on, keep answers concise (1-3 sentences)."
    assert "more detailed" in verbosity_directive(Verbosity.VERBOSE)
